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

``multipart/form-data`` encoding for request bodies that carry files.

A form value is sent as a file when it is a `FileField` or a string of the
form ``@/path/to/file`` naming an existing file.

"""

import mimetypes
import os
import uuid

from multihttp.query import flatten, scalar


CRLF = b'\r\n'


class FileField(object):

    """A file to upload as one part of a form."""

    def __init__(self, path, filename=None, content_type=None):
        self.path = path
        self.filename = filename or os.path.basename(path)
        if content_type is None:
            content_type = mimetypes.guess_type(self.filename)[0]
        self.content_type = content_type or 'application/octet-stream'

    def read(self):
        with open(self.path, 'rb') as f:
            return f.read()

    def __repr__(self):
        return '<FileField %s>' % self.path


def is_file_reference(value):
    return (isinstance(value, str) and value.startswith('@')
            and os.path.isfile(value[1:]))


def as_file_field(value):
    """Returns the `FileField` for `value`, or `None` if it is no file."""
    if isinstance(value, FileField):
        return value
    if is_file_reference(value):
        return FileField(value[1:])
    return None


def has_files(data):
    return any(as_file_field(value) is not None
               for _, value in flatten(data, convert=lambda value: value))


def _quote(value):
    return value.replace('\\', '\\\\').replace('"', '%22')


class FormDataMessage(object):

    """A ``multipart/form-data`` message.

    Like an `email.message.Message`, the message's own headers are available
    from `items()` while `as_bytes()` renders only the body, so the two can be
    handed to a transport separately.

    """

    def __init__(self, boundary=None):
        self.boundary = boundary or uuid.uuid4().hex
        self.parts = []

    def attach_field(self, name, value):
        headers = [('Content-Disposition', 'form-data; name="%s"' % _quote(name))]
        self.parts.append((headers, scalar(value).encode('utf-8')))

    def attach_file(self, name, field):
        headers = [
            ('Content-Disposition', 'form-data; name="%s"; filename="%s"'
                % (_quote(name), _quote(field.filename))),
            ('Content-Type', field.content_type),
        ]
        self.parts.append((headers, field.read()))

    def items(self):
        return [('Content-Type', 'multipart/form-data; boundary=%s' % self.boundary)]

    def as_bytes(self):
        delimiter = b'--' + self.boundary.encode('ascii')
        lines = []
        for headers, payload in self.parts:
            lines.append(delimiter + CRLF)
            for header, value in headers:
                lines.append(('%s: %s' % (header, value)).encode('utf-8') + CRLF)
            lines.append(CRLF)
            lines.append(payload + CRLF)
        lines.append(delimiter + b'--' + CRLF)
        return b''.join(lines)


def encode_form_data(data, boundary=None):
    """Builds a `FormDataMessage` from the (possibly nested) mapping `data`.

    Returns the message headers as a dict and the encoded body.

    """
    msg = FormDataMessage(boundary)
    for name, value in flatten(data, convert=lambda value: value):
        field = as_file_field(value)
        if field is None:
            msg.attach_field(name, value)
        else:
            msg.attach_file(name, field)

    content = msg.as_bytes()
    headers = {}
    for header, value in msg.items():
        headers[header] = value
    return headers, content
