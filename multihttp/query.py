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

Query-string encoding for nested data.

Mappings and lists are flattened into indexed bracket keys, the way form
libraries on the server side expect them::

    >>> build_query({'q': 'cats', 'page': {'size': 10}, 'tags': ['a', 'b']})
    'q=cats&page%5Bsize%5D=10&tags%5B0%5D=a&tags%5B1%5D=b'

`parse_query()` reverses this, turning mappings keyed ``0`` through ``n-1``
back into lists.

"""

from collections.abc import Mapping
import re
from urllib.parse import quote_plus, unquote_plus


_SUBKEY = re.compile(r'\[([^\[\]]*)\]')


def scalar(value):
    """Returns the text form of a single query value."""
    if value is True:
        return '1'
    if value is False:
        return '0'
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return str(value)


def flatten(data, prefix=None, convert=scalar):
    """Flattens nested mappings and lists in `data` into a list of
    ``(key, value)`` pairs with bracketed keys.

    `None` values and empty containers produce no pairs. Leaf values are
    passed through `convert`, which by default turns them into text.

    """
    if isinstance(data, Mapping):
        items = data.items()
    else:
        items = enumerate(data)

    pairs = []
    for key, value in items:
        if prefix is None:
            name = str(key)
        else:
            name = '%s[%s]' % (prefix, key)
        if value is None:
            continue
        if isinstance(value, (Mapping, list, tuple)):
            pairs.extend(flatten(value, name, convert))
        else:
            pairs.append((name, convert(value)))
    return pairs


def build_query(data):
    """Encodes the mapping `data` as an ``application/x-www-form-urlencoded``
    string."""
    return '&'.join('%s=%s' % (quote_plus(key), quote_plus(value))
                    for key, value in flatten(data))


def parse_query(text):
    """Decodes a query string into a (possibly nested) dict.

    Bracketed keys build nested dicts, an empty bracket pair appends the next
    index, and dicts whose keys are exactly ``'0'`` to ``'n-1'`` become lists.
    HTML-escaped ``&amp;`` separators are accepted.

    """
    data = {}
    for part in text.replace('&amp;', '&').split('&'):
        if not part:
            continue
        name, _, value = part.partition('=')
        _insert(data, _split_key(unquote_plus(name)), unquote_plus(value))
    return dict((key, _listify(value)) for key, value in data.items())


def _split_key(name):
    start = name.find('[')
    if start <= 0:
        return [name]
    keys = [name[:start]]
    pos = start
    for match in _SUBKEY.finditer(name, start):
        if match.start() != pos:
            break
        keys.append(match.group(1))
        pos = match.end()
    if len(keys) == 1:
        return [name]
    return keys


def _next_index(node):
    indexes = [int(key) for key in node if key.isdigit()]
    if not indexes:
        return '0'
    return str(max(indexes) + 1)


def _insert(node, keys, value):
    for key in keys[:-1]:
        if key == '':
            key = _next_index(node)
        child = node.get(key)
        if not isinstance(child, dict):
            child = node[key] = {}
        node = child
    last = keys[-1]
    if last == '':
        last = _next_index(node)
    node[last] = value


def _listify(value):
    if not isinstance(value, dict):
        return value
    value = dict((key, _listify(child)) for key, child in value.items())
    indexes = [str(i) for i in range(len(value))]
    if value and set(value) == set(indexes):
        return [value[index] for index in indexes]
    return value
