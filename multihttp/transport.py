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

The transport layer: `Handle` instances carrying one transfer's options and
outcome, and the blocking `Transport` that performs them through
`httplib2.Http`.

Transport failures are not raised from here. They are recorded on the handle
as a numeric `errno` (using the familiar curl error numbers) and a message,
and it is up to the caller to decide whether a failure is an exception.

"""

import email.message
import http.client
from http.cookiejar import MozillaCookieJar
import logging
import os
import socket
import ssl
import time
import urllib.request
from urllib.parse import urlsplit

import httplib2


log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_REDIRECTS = httplib2.DEFAULT_MAX_REDIRECTS
SCHEMES = ('http', 'https')

E_OK = 0
E_UNSUPPORTED_PROTOCOL = 1
E_URL_MALFORMAT = 3
E_COULDNT_RESOLVE_PROXY = 5
E_COULDNT_RESOLVE_HOST = 6
E_COULDNT_CONNECT = 7
E_OPERATION_TIMEDOUT = 28
E_SSL_CONNECT_ERROR = 35
E_TOO_MANY_REDIRECTS = 47
E_GOT_NOTHING = 52
E_RECV_ERROR = 56

_ERROR_CODES = (
    (httplib2.ServerNotFoundError, E_COULDNT_RESOLVE_HOST),
    (httplib2.ProxiesUnavailableError, E_COULDNT_RESOLVE_PROXY),
    ((httplib2.RedirectLimit, httplib2.RedirectMissingLocation), E_TOO_MANY_REDIRECTS),
    (httplib2.RelativeURIError, E_URL_MALFORMAT),
    (socket.gaierror, E_COULDNT_RESOLVE_HOST),
    ((socket.timeout, TimeoutError), E_OPERATION_TIMEDOUT),
    (ssl.SSLError, E_SSL_CONNECT_ERROR),
    (http.client.RemoteDisconnected, E_GOT_NOTHING),
    ((ConnectionRefusedError, ConnectionAbortedError), E_COULDNT_CONNECT),
)


def error_code(exc):
    """Returns the error number for the transport exception `exc`."""
    for types, code in _ERROR_CODES:
        if isinstance(exc, types):
            return code
    return E_RECV_ERROR


def load_cookie_jar(path):
    """Opens the Netscape-format cookie file at `path`, which need not exist
    yet."""
    jar = MozillaCookieJar(path)
    if os.path.exists(path):
        jar.load(ignore_discard=True, ignore_expires=True)
    return jar


def save_cookie_jar(jar):
    jar.save(ignore_discard=True, ignore_expires=True)


class _CookieResponse(object):
    # Just enough of a urllib response for CookieJar.extract_cookies().
    def __init__(self, headers):
        self.headers = headers

    def info(self):
        msg = email.message.Message()
        for header, value in self.headers.items():
            msg[header] = value
        return msg


def cookie_header(jar, url, headers=None):
    """Returns the ``Cookie`` header value `jar` holds for `url`, if any."""
    request = urllib.request.Request(url, headers=headers or {})
    jar.add_cookie_header(request)
    return request.get_header('Cookie')


def extract_cookies(jar, url, headers):
    jar.extract_cookies(_CookieResponse(headers), urllib.request.Request(url))


class Proxy(object):

    """An HTTP proxy to send requests through."""

    def __init__(self, host, port=None, username=None, password=None):
        if port is None and ':' in host:
            host, port = host.rsplit(':', 1)
        self.host = host
        self.port = int(port or 8080)
        self.username = username
        self.password = password

    def url(self):
        auth = ''
        if self.username:
            auth = '%s:%s@' % (self.username, self.password or '')
        return 'http://%s%s:%d' % (auth, self.host, self.port)

    def proxy_info(self):
        return httplib2.ProxyInfo(httplib2.socks.PROXY_TYPE_HTTP,
                                  self.host, self.port,
                                  proxy_user=self.username,
                                  proxy_pass=self.password)

    def __repr__(self):
        return '<Proxy %s:%d>' % (self.host, self.port)


class Handle(object):

    """A single transfer.

    The attributes set before the transfer (`url`, `method`, `headers`,
    `body` and the options below them) describe the request. Once performed,
    by a `Transport` or a multiplexer, the handle holds the outcome:
    `status_code`, `content_type`, `response_headers` and `content` for a
    completed exchange, or a non-zero `errno` and an `error` message for a
    failed one.

    """

    def __init__(self, url=None, method='GET'):
        self.url = url
        self.method = method
        self.headers = {}
        self.body = None
        self.follow_redirects = True
        self.max_redirects = DEFAULT_MAX_REDIRECTS
        self.verify_ssl = True
        self.proxy = None
        self.timeout = DEFAULT_TIMEOUT
        self.nobody = False
        self.include_headers = False
        self.cookie_file = None
        self.reset()

    def reset(self):
        """Forgets the outcome of any earlier transfer."""
        self.status_code = 0
        self.reason = ''
        self.content_type = ''
        self.response_headers = {}
        self.content = None
        self.effective_url = None
        self.total_time = 0.0
        self.errno = E_OK
        self.error = ''
        self.done = False

    def request_method(self):
        if self.nobody:
            return 'HEAD'
        return self.method

    def receive(self, status_code, headers, content, url=None, reason=None):
        """Records a completed exchange."""
        self.status_code = int(status_code)
        self.reason = reason or http.client.responses.get(self.status_code, '')
        self.response_headers = dict((key.lower(), value) for key, value in headers.items())
        self.content_type = self.response_headers.get('content-type', '')
        content = content or b''
        if self.include_headers:
            content = self.header_block() + content
        self.content = content
        self.effective_url = url or self.url
        self.done = True

    def fail(self, errno, error):
        """Records a failed transfer."""
        self.errno = errno
        self.error = error
        self.content = None
        self.done = True

    def header_block(self):
        lines = ['HTTP/1.1 %d %s' % (self.status_code, self.reason)]
        for header, value in self.response_headers.items():
            lines.append('%s: %s' % (header, value))
        return ('\r\n'.join(lines) + '\r\n\r\n').encode('latin-1')

    def getinfo(self):
        return {
            'url': self.effective_url or self.url,
            'http_code': self.status_code,
            'content_type': self.content_type,
            'total_time': self.total_time,
            'headers': self.response_headers,
            'error': self.error,
            'errno': self.errno,
        }

    def __repr__(self):
        return '<Handle %s %s>' % (self.request_method(), self.url)


class Transport(object):

    """Performs `Handle` transfers synchronously with `httplib2`.

    Parameter `cache` is passed on to `httplib2.Http`: a directory name or a
    cache object through which responses are cached and revalidated.

    """

    def __init__(self, cache=None):
        self.cache = cache

    def http(self, handle):
        """Returns an `httplib2.Http` configured with the options of
        `handle`."""
        if handle.proxy is not None:
            proxy_info = handle.proxy.proxy_info()
        else:
            proxy_info = httplib2.proxy_info_from_environment
        http = httplib2.Http(
            cache=self.cache,
            timeout=handle.timeout,
            proxy_info=proxy_info,
            disable_ssl_certificate_validation=not handle.verify_ssl,
        )
        http.follow_redirects = handle.follow_redirects
        http.follow_all_redirects = handle.follow_redirects
        return http

    def perform(self, handle):
        """Performs the transfer described by `handle`, recording its outcome
        on it, and returns the handle."""
        handle.reset()
        scheme = urlsplit(handle.url or '').scheme
        if scheme and scheme.lower() not in SCHEMES:
            handle.fail(E_UNSUPPORTED_PROTOCOL, 'Protocol "%s" not supported' % scheme)
            return handle

        started = time.time()
        try:
            headers = dict(handle.headers)
            jar = None
            if handle.cookie_file:
                jar = load_cookie_jar(handle.cookie_file)
                cookie = cookie_header(jar, handle.url, headers)
                if cookie:
                    headers['Cookie'] = cookie

            response, content = self.http(handle).request(
                handle.url,
                method=handle.request_method(),
                body=handle.body,
                headers=headers,
                redirections=handle.max_redirects,
            )
            if jar is not None:
                extract_cookies(jar, handle.url, response)
                save_cookie_jar(jar)
        except (httplib2.HttpLib2Error, http.client.HTTPException, OSError, ValueError) as exc:
            # ValueError covers headers http.client cannot encode.
            log.debug('Transfer of %s failed: %r', handle.url, exc)
            handle.fail(error_code(exc), str(exc) or type(exc).__name__)
        else:
            handle.receive(response.status, response, content,
                           url=response.get('content-location'),
                           reason=response.reason)
        finally:
            handle.total_time = time.time() - started
        return handle

    def send(self, method, url, headers=None, body=None, **options):
        """Performs one request and returns its `Handle`.

        Keyword `options` set the handle's other attributes, such as
        ``timeout``, ``follow_redirects`` or ``cookie_file``.

        """
        handle = Handle(url, method.upper())
        if headers:
            handle.headers.update(headers)
        handle.body = body
        for option, value in options.items():
            if not hasattr(handle, option):
                raise TypeError('Unknown transfer option %r' % (option,))
            setattr(handle, option, value)
        return self.perform(handle)
