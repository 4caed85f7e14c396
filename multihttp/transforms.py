# Copyright (c) 2009-2010 Six Apart Ltd.
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# * Redistributions of source code must retain the above copyright notice,
#   this list of conditions and the following disclaimer.
#
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
#
# * Neither the name of Six Apart Ltd. nor the names of its contributors may
#   be used to endorse or promote products derived from this software without
#   specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

"""

Encode and decode stages for request bodies and response content.

A stage is one of the named transforms (`JSON`, `XML`), a function wrapped in
a `CustomTransform`, or the `SniffTransform` that picks JSON or XML decoding
from the response's content type. `as_transform()` turns whatever a caller
passes to `Request.encode()` or `Request.decode()` into one of these.

"""

from collections.abc import Mapping
import json
import re
import xml.etree.ElementTree as ElementTree

from multihttp.errors import ConfigurationError
from multihttp.query import scalar


JSON = 'json'
XML = 'xml'

JSON_PATTERN = re.compile(
    r'^(?:application|text)/(?:[a-z]+(?:[.-][0-9a-z]+)*[+.]|x-)?json(?:-[a-z]+)?',
    re.IGNORECASE)
XML_PATTERN = re.compile(
    r'^(?:text/|application/(?:atom\+|rss\+)?)xml', re.IGNORECASE)

XML_ROOT = 'xml'


def xml_encode(data, root=XML_ROOT):
    """Renders `data` as an XML document with a `root` element.

    Mapping keys become child elements, list values repeat the element, and
    everything else becomes element text.

    """
    element = ElementTree.Element(root)
    _fill_element(element, data)
    return ElementTree.tostring(element, encoding='unicode')


def _fill_element(element, value):
    if isinstance(value, Mapping):
        for key, child in value.items():
            if isinstance(child, (list, tuple)):
                for item in child:
                    _fill_element(ElementTree.SubElement(element, str(key)), item)
            else:
                _fill_element(ElementTree.SubElement(element, str(key)), child)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _fill_element(ElementTree.SubElement(element, 'item'), item)
    elif value is not None:
        element.text = scalar(value)


def xml_decode(text):
    """Parses an XML document into dicts, lists and strings.

    The root element is dropped. Repeated child elements become lists, and
    attributes are kept under an ``@attributes`` key.

    """
    return _element_data(ElementTree.fromstring(text))


def _element_data(element):
    children = list(element)
    if not children and not element.attrib:
        return element.text or ''

    data = {}
    if element.attrib:
        data['@attributes'] = dict(element.attrib)
    for child in children:
        value = _element_data(child)
        if child.tag not in data:
            data[child.tag] = value
        elif isinstance(data[child.tag], list):
            data[child.tag].append(value)
        else:
            data[child.tag] = [data[child.tag], value]
    if not children and element.text and element.text.strip():
        data['@text'] = element.text
    return data


class Transform(object):

    """One stage of an encode or decode pipeline."""

    content_type = None

    def encode(self, value):
        raise NotImplementedError()

    def decode(self, value, content_type=''):
        raise NotImplementedError()


class NamedTransform(Transform):

    """The built-in JSON or XML transform."""

    content_types = {
        JSON: 'application/json',
        XML: 'application/xml',
    }

    def __init__(self, name):
        if name not in self.content_types:
            raise ConfigurationError('Unknown transform %r' % (name,))
        self.name = name
        self.content_type = self.content_types[name]

    def encode(self, value):
        if self.name == JSON:
            return json.dumps(value)
        return xml_encode(value)

    def decode(self, value, content_type=''):
        if self.name == JSON:
            return json.loads(value)
        return xml_decode(value)

    def __repr__(self):
        return '<NamedTransform %s>' % self.name


class CustomTransform(Transform):

    """A caller-supplied ``function(value) -> value`` used as a stage."""

    def __init__(self, function):
        self.function = function

    def encode(self, value):
        return self.function(value)

    def decode(self, value, content_type=''):
        return self.function(value)

    def __repr__(self):
        return '<CustomTransform %r>' % (self.function,)


class SniffTransform(Transform):

    """Decodes JSON or XML content according to the response content type,
    passing any other content through unchanged."""

    def encode(self, value):
        return value

    def decode(self, value, content_type=''):
        content_type = content_type or ''
        if JSON_PATTERN.match(content_type):
            return json.loads(value)
        if XML_PATTERN.match(content_type):
            return xml_decode(value)
        return value

    def __repr__(self):
        return '<SniffTransform>'


def as_transform(value):
    """Returns the `Transform` for a stage given as a `Transform`, a
    transform name, a callable, or `None` (content-type sniffing)."""
    if isinstance(value, Transform):
        return value
    if value is None:
        return SniffTransform()
    if isinstance(value, str):
        return NamedTransform(value.lower())
    if callable(value):
        return CustomTransform(value)
    raise ConfigurationError('Cannot use %r as a transform' % (value,))
