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

Multiplexed handle sets for driving many transfers from one thread.

A multiplexer is driven from outside: `perform()` makes whatever progress is
possible without blocking, and `select()` blocks until at least one transfer
finishes or the timeout passes. `BatchRequest` alternates the two until no
transfer is active.

"""

import asyncio
import logging
import time

import httpx

from multihttp.transport import (
    E_COULDNT_CONNECT, E_COULDNT_RESOLVE_PROXY, E_GOT_NOTHING,
    E_OPERATION_TIMEDOUT, E_RECV_ERROR, E_TOO_MANY_REDIRECTS,
    E_UNSUPPORTED_PROTOCOL, E_URL_MALFORMAT, load_cookie_jar, save_cookie_jar)


log = logging.getLogger(__name__)

# perform() status values
M_OK = 0
CALL_MULTI_PERFORM = -1

_ERROR_CODES = (
    (httpx.UnsupportedProtocol, E_UNSUPPORTED_PROTOCOL),
    (httpx.ProxyError, E_COULDNT_RESOLVE_PROXY),
    (httpx.TimeoutException, E_OPERATION_TIMEDOUT),
    (httpx.ConnectError, E_COULDNT_CONNECT),
    (httpx.TooManyRedirects, E_TOO_MANY_REDIRECTS),
    (httpx.RemoteProtocolError, E_GOT_NOTHING),
    (httpx.InvalidURL, E_URL_MALFORMAT),
)


def error_code(exc):
    """Returns the error number for the `httpx` exception `exc`."""
    for types, code in _ERROR_CODES:
        if isinstance(exc, types):
            return code
    return E_RECV_ERROR


class Multiplexer(object):

    """The interface `BatchRequest` drives.

    `perform()` returns a ``(status, active)`` pair, where `status` is
    `CALL_MULTI_PERFORM` when calling again right away would make more
    progress and `active` is the number of transfers still running.
    `select()` returns the number of transfers that became ready, or ``-1``
    if waiting failed.

    """

    def add_handle(self, handle):
        raise NotImplementedError()

    def remove_handle(self, handle):
        raise NotImplementedError()

    def perform(self):
        raise NotImplementedError()

    def select(self, timeout):
        raise NotImplementedError()

    def get_content(self, handle):
        return handle.content

    def close(self):
        pass


def default_client(handle, cookies=None):
    """Returns an `httpx.AsyncClient` configured for `handle`."""
    options = {
        'verify': handle.verify_ssl,
        'max_redirects': handle.max_redirects,
        'cookies': cookies,
    }
    if handle.proxy is not None:
        options['proxy'] = handle.proxy.url()
    return httpx.AsyncClient(**options)


class AsyncMultiplexer(Multiplexer):

    """Runs each added handle's transfer as a task on a private `asyncio`
    event loop, advanced only while `perform()` or `select()` is running.

    Parameter `client_factory` is called with a handle and its cookie jar (or
    `None`) and must return an `httpx.AsyncClient`; by default
    `default_client()` is used.

    """

    def __init__(self, client_factory=None):
        self.client_factory = client_factory or default_client
        self.handles = []
        self._tasks = {}
        self._loop = None

    @property
    def loop(self):
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop

    def add_handle(self, handle):
        if handle in self.handles:
            return False
        handle.reset()
        self.handles.append(handle)
        return True

    def remove_handle(self, handle):
        if handle not in self.handles:
            return False
        self.handles.remove(handle)
        task = self._tasks.pop(handle, None)
        if task is not None and not task.done():
            task.cancel()
            self.loop.run_until_complete(asyncio.gather(task, return_exceptions=True))
        return True

    def perform(self):
        started = [handle for handle in self.handles if handle not in self._tasks]
        for handle in started:
            self._tasks[handle] = self.loop.create_task(self._transfer(handle))
        self.loop.run_until_complete(asyncio.sleep(0))

        active = len([task for task in self._tasks.values() if not task.done()])
        if started:
            return CALL_MULTI_PERFORM, active
        return M_OK, active

    def select(self, timeout):
        pending = [task for task in self._tasks.values() if not task.done()]
        if not pending:
            return 0
        try:
            done, _ = self.loop.run_until_complete(asyncio.wait(
                pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED))
        except OSError as exc:
            log.debug('Waiting on %d transfers failed: %r', len(pending), exc)
            return -1
        return len(done)

    def close(self):
        for handle in list(self.handles):
            self.remove_handle(handle)
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()

    async def _transfer(self, handle):
        started = time.time()
        try:
            jar = None
            if handle.cookie_file:
                jar = load_cookie_jar(handle.cookie_file)
            async with self.client_factory(handle, jar) as client:
                response = await client.request(
                    handle.request_method(),
                    handle.url,
                    headers=handle.headers,
                    content=handle.body,
                    follow_redirects=handle.follow_redirects,
                    timeout=handle.timeout,
                )
            if jar is not None:
                save_cookie_jar(jar)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            log.debug('Transfer of %s failed: %r', handle.url, exc)
            handle.fail(error_code(exc), str(exc) or type(exc).__name__)
        except Exception as exc:
            # Task exceptions are never retrieved; every failure lands on the handle.
            log.warning('Transfer of %s failed unexpectedly: %r', handle.url, exc)
            handle.fail(E_RECV_ERROR, str(exc) or type(exc).__name__)
        else:
            handle.receive(response.status_code, response.headers,
                           response.content, url=str(response.url),
                           reason=response.reason_phrase)
        finally:
            handle.total_time = time.time() - started
