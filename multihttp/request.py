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

The `Request` composer.

A `Request` is configured fluently with a URL, a bag of arguments, mapping
rules that pick the URL query and form fields out of those arguments, and
the encode/decode stages for the body and the response::

    >>> users = (Request()
    ...          .url('https://api.example.com/users', maps={'#q': None, 'per_page:limit': 20})
    ...          .parameters({'q': 'cats'})
    ...          .json())

When it is executed, the URL and body are computed once from the mapping
rules, handed to the transport, and the response content is run through the
decode stages.

"""

from collections.abc import Mapping
import email.message
import logging
from urllib.parse import quote

from multihttp.errors import BatchError, ConfigurationError, TransportError
from multihttp.maps import compile_maps, is_empty, resolve
from multihttp.multipart import encode_form_data, has_files
from multihttp.query import build_query, parse_query
from multihttp.transforms import JSON, XML, SniffTransform, as_transform
from multihttp.transport import Handle, Proxy, Transport
from multihttp.uri import Uri


log = logging.getLogger(__name__)
req_log = logging.getLogger('.'.join((__name__, 'request')))
resp_log = logging.getLogger('.'.join((__name__, 'response')))

GET = 'GET'
POST = 'POST'
PUT = 'PUT'
PATCH = 'PATCH'
DELETE = 'DELETE'
HEAD = 'HEAD'
OPTIONS = 'OPTIONS'
SEARCH = 'SEARCH'

METHODS = (GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS, SEARCH)
BODYLESS_METHODS = (GET, HEAD, OPTIONS, DELETE)

DEFAULT_USER_AGENT = 'multihttp/1.0'

_UNSET = object()


def canonical_header(name):
    """Returns `name` in ``Canonical-Header-Case``."""
    return '-'.join(part.capitalize() for part in name.strip().split('-'))


def parse_header_block(text):
    """Parses a block of ``Name: value`` lines into a dict.

    Lines without a colon, such as the status line, are kept under integer
    keys in the order they appear.

    """
    items = {}
    index = 0
    for line in (text or '').split('\n'):
        line = line.strip()
        if not line:
            continue
        name, sep, value = line.partition(':')
        if not sep:
            items[index] = line
            index += 1
            continue
        items[name.strip()] = value.strip()
    return items


def content_charset(content_type):
    msg = email.message.Message()
    msg['content-type'] = content_type or 'text/plain'
    return msg.get_content_charset()


class Request(object):

    """One outbound HTTP request.

    Parameter `url` is the target URL, as a string or a `Uri`. Parameter
    `transport` is the `Transport` used by `execute()`; a new one is created
    if it is not given.

    """

    def __init__(self, url=None, transport=None):
        self.handle = Handle()
        self.transport = transport or Transport()
        self.http_method = GET
        self.params = {}
        self.uri = None
        self.uri_maps = None
        self.uri_encoder = None
        self.form_maps = None
        self.encoders = []
        self.decoders = []
        self.verify_ssl = True
        self.allow_redirects = True
        self.batch = None

        self.response_headers = {}
        self.response_text = None
        self.content = None
        self._decoded = _UNSET
        self._performed = False

        if url:
            self.url(url)

    # Configuration

    def url(self, url, maps=None, encoder=None, verify_ssl=None):
        """Sets the target URL.

        Parameter `maps` is the mapping specification whose result is added
        to the URL's query data, optionally transformed by `encoder` first.
        Parameter `verify_ssl` turns certificate verification on or off.

        """
        if url:
            self.uri = url if isinstance(url, Uri) else Uri(str(url))
        self.uri_maps = compile_maps(maps) if maps else None
        self.uri_encoder = as_transform(encoder) if encoder is not None else None
        if verify_ssl is not None:
            self.verify_ssl = verify_ssl
        return self

    def maps(self, maps, parameters=None):
        """Sets the mapping specification for the form body.

        A request that would otherwise be a GET becomes a POST.

        """
        if self.http_method == GET:
            self.http_method = POST
        self.parameters(parameters)
        self.form_maps = compile_maps(maps)
        return self

    def append_maps(self, maps):
        self.form_maps = compile_maps(self.form_maps).merge(maps)
        return self

    def parameters(self, parameters):
        """Adds `parameters` to the argument bag.

        A mapping is merged into the existing arguments. Anything else (a
        string, for instance) replaces them and is sent as the body as is.

        """
        if is_empty(parameters):
            return self
        if not isinstance(parameters, Mapping):
            self.params = parameters
            return self
        params = dict(self.params) if isinstance(self.params, Mapping) else {}
        params.update(parameters)
        self.params = params
        return self

    def encode(self, func=JSON, clear=False):
        """Adds a stage to the body encoding pipeline."""
        if clear:
            self.encoders = []
        self.encoders.append(as_transform(func))
        return self

    def decode(self, func=None, clear=False):
        """Adds a stage to the response decoding pipeline.

        A `None` stage decodes JSON or XML according to the response content
        type.

        """
        if clear:
            self.decoders = []
        self.decoders.append(as_transform(func))
        return self

    def method(self, method=GET):
        method = method.upper()
        if method not in METHODS:
            raise ConfigurationError('Unsupported HTTP method %r' % (method,))
        self.http_method = method
        return self

    def header(self, key, value=None):
        if isinstance(key, Mapping):
            return self.set_header(key)
        return self.set_header({key: value})

    def set_header(self, headers):
        """Sets the request headers in the mapping `headers`, skipping empty
        values and joining list values with commas."""
        for key, value in headers.items():
            if is_empty(value):
                continue
            if isinstance(value, (list, tuple)):
                value = ','.join(str(item) for item in value)
            self.handle.headers[canonical_header(key)] = str(value)
        return self

    def cookie(self, key, value=None):
        """Sets cookies to send.

        `key` may be a mapping of cookies, a ready-made cookie string, a
        single cookie name with its `value`, or ``@path`` naming a cookie jar
        file to read from and save to.

        """
        if isinstance(key, str) and key.startswith('@'):
            return self.set_cookie_file(key[1:])
        if isinstance(key, Mapping) or '=' in key:
            return self.set_cookie(key)
        return self.set_cookie({key: value})

    def set_cookie(self, cookie):
        if is_empty(cookie):
            return self
        if isinstance(cookie, Mapping):
            cookie = '; '.join('%s=%s' % (name, quote(str(value), safe=''))
                               for name, value in cookie.items())
        self.handle.headers['Cookie'] = cookie
        return self

    def set_cookie_file(self, path):
        self.handle.cookie_file = str(path)
        return self

    def set_proxy(self, host, port=None, username=None, password=None):
        self.handle.proxy = Proxy(host, port, username, password)
        return self

    def set_user_agent(self, user_agent):
        return self.set_header({'User-Agent': user_agent})

    def set_referrer(self, url):
        return self.set_header({'Referer': str(url)})

    def set_allow_redirects(self, allow_redirects):
        self.allow_redirects = allow_redirects
        return self

    def set_timeout(self, timeout):
        self.handle.timeout = timeout
        return self

    def set_no_body(self):
        self.handle.nobody = True
        return self

    def set_header_option(self, include_headers=False):
        """Sets whether the response headers are prepended to the content."""
        self.handle.include_headers = include_headers
        return self

    def set_option(self, option, value):
        if not hasattr(self.handle, option):
            raise ConfigurationError('Unknown transfer option %r' % (option,))
        setattr(self.handle, option, value)
        return self

    # Composition

    def get_uri_parameters(self):
        data = resolve(self.uri_maps, self.params)
        if self.uri_encoder is None:
            return data
        return self.uri_encoder.encode(data)

    def get_url(self):
        """Returns the target `Uri` with the mapped query data added.

        The configured `Uri` itself is left untouched.

        """
        if self.uri is None:
            raise ConfigurationError('No URL to request')
        uri = self.uri.copy()
        if self.uri_maps and isinstance(self.params, Mapping):
            data = self.get_uri_parameters()
            if isinstance(data, str):
                data = parse_query(data)
            uri.add_data(data)
        log.debug('HTTP URL: %s', uri)
        return uri

    def get_post_source(self):
        """Returns the body data before form encoding: the raw parameters, or
        the mapped form fields run through the encoders."""
        if not isinstance(self.params, Mapping):
            return self.params
        if self.form_maps is None:
            return ''
        data = resolve(self.form_maps, self.params)
        for encoder in self.encoders:
            data = encoder.encode(data)
        return data

    def build_post_parameters(self):
        """Returns the headers implied by the body and the encoded body."""
        data = self.get_post_source()
        if isinstance(data, Mapping):
            if has_files(data):
                return encode_form_data(data)
            return ({'Content-Type': 'application/x-www-form-urlencoded'},
                    build_query(data))

        headers = {}
        for encoder in reversed(self.encoders):
            if encoder.content_type:
                headers['Content-Type'] = encoder.content_type
                break
        return headers, data

    def apply_method(self):
        """Computes the URL and body from the current configuration and sets
        them on the transfer handle, which is returned."""
        handle = self.handle
        handle.url = str(self.get_url())
        handle.method = self.http_method
        handle.verify_ssl = self.verify_ssl
        handle.follow_redirects = self.allow_redirects
        handle.body = None
        if self.http_method == HEAD:
            handle.nobody = True

        if self.http_method not in BODYLESS_METHODS:
            headers, body = self.build_post_parameters()
            present = set(key.lower() for key in handle.headers)
            for header, value in headers.items():
                if header.lower() not in present:
                    handle.headers[header] = value
            handle.body = body

        if req_log.isEnabledFor(logging.DEBUG):
            req_log.debug('Making request:\n%s %s\n%s\n\n%s',
                handle.request_method(), handle.url,
                '\n'.join([
                    '%s: %s' % (k, v) for k, v in handle.headers.items()
                ]), handle.body or '')
        return handle

    # Execution

    def execute(self):
        """Performs the request and returns the decoded response.

        A `TransportError` is raised if the transfer fails.

        """
        self._perform()
        return self.result()

    def _perform(self):
        if self.batch is not None:
            raise BatchError('This request belongs to a batch; execute the batch instead')
        self.apply_method()
        self.transport.perform(self.handle)
        self.receive(self.handle.content)
        if self.handle.errno:
            raise TransportError(self.handle.errno, self.handle.error)

    def receive(self, content):
        """Records the outcome of the transfer, with `content` as the raw
        response body."""
        self._performed = True
        self.response_headers = self.handle.getinfo()
        self.content = content
        self._decoded = _UNSET
        if content is None:
            self.response_text = None
        else:
            charset = content_charset(self.handle.content_type) or 'utf-8'
            try:
                self.response_text = content.decode(charset, 'replace')
            except LookupError:
                self.response_text = content.decode('utf-8', 'replace')

        if resp_log.isEnabledFor(logging.DEBUG):
            if self.handle.errno:
                resp_log.debug('Request to %s failed: %d %s', self.handle.url,
                    self.handle.errno, self.handle.error)
            else:
                resp_log.debug('Got response:\n%d %s\n%s\n\n%s',
                    self.handle.status_code, self.handle.reason,
                    '\n'.join([
                        '%s: %s' % (k, v) for k, v in self.handle.response_headers.items()
                    ]), self.response_text)

    def result(self):
        """Returns the response text run through the decode stages.

        The decoded value is computed once and remembered. Without any decode
        stage, JSON and XML responses are decoded according to their content
        type. A failed transfer has no result.

        """
        if self._decoded is _UNSET:
            self._decoded = self.decode_response(self.response_text)
        return self._decoded

    def decode_response(self, data):
        if data is None:
            return None
        decoders = self.decoders or [SniffTransform()]
        for decoder in decoders:
            data = decoder.decode(data, self.handle.content_type)
        return data

    def text(self):
        return self.execute()

    def json(self):
        return self.decode(JSON, True).text()

    def xml(self):
        return self.decode(XML, True).text()

    def get(self):
        return self.method(GET).text()

    def post(self):
        return self.method(POST).text()

    def put(self):
        return self.method(PUT).text()

    def patch(self):
        return self.method(PATCH).text()

    def delete(self):
        return self.method(DELETE).text()

    def head(self):
        return self.method(HEAD).text()

    def options(self):
        return self.method(OPTIONS).text()

    def search(self):
        return self.method(SEARCH).text()

    def get_headers(self):
        """Requests only the response headers and returns them as a dict."""
        return (self.set_no_body()
                .set_header_option(True)
                .decode(parse_header_block, True)
                .execute())

    def save(self, file):
        """Performs the request and writes the raw response body to `file`,
        a path or a binary file object. Returns the number of bytes
        written."""
        self._perform()
        content = self.content or b''
        if isinstance(file, str):
            with open(file, 'wb') as f:
                f.write(content)
        else:
            file.write(content)
        return len(content)

    # Outcome

    @property
    def status_code(self):
        return self.handle.status_code

    @property
    def content_type(self):
        return self.handle.content_type

    @property
    def errno(self):
        return self.handle.errno

    def error(self):
        """Returns the transport error message, or `None` if the transfer
        did not fail."""
        return self.handle.error or None

    def get_response_header(self, key=None):
        """Returns all transfer information, or the item named `key`, looked
        up first among the transfer information and then among the HTTP
        response headers."""
        if not key:
            return self.response_headers
        if key in self.response_headers:
            return self.response_headers[key]
        return self.handle.response_headers.get(key.lower())

    def get_response_text(self):
        if not self._performed:
            self.execute()
        return self.response_text

    def get_handle(self):
        return self.handle

    def __repr__(self):
        return '<Request %s %s>' % (self.http_method, self.uri)
