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

Concurrent execution of many requests over one multiplexed polling loop.

A `BatchRequest` collects `Request` instances (or bare transport handles),
finalizes them all, and then drives the multiplexer until every transfer has
finished::

    >>> batch = BatchRequest()
    >>> batch.add(Request('http://example.com/a'), Request('http://example.com/b'))
    >>> batch.execute()
    True
    >>> batch.map(lambda request: request.result())

Execution walks the states `IDLE`, `DRAINING` (calling `perform()` while it
asks to be called again), `WAITING` (blocked in `select()`), and finally
`DRAINED`.

"""

import logging
import time

from multihttp.errors import BatchError
from multihttp.multiplexer import CALL_MULTI_PERFORM, AsyncMultiplexer
from multihttp.request import Request
from multihttp.transport import E_RECV_ERROR, Handle


log = logging.getLogger(__name__)

IDLE = 'idle'
DRAINING = 'draining'
WAITING = 'waiting'
DRAINED = 'drained'

DEFAULT_SELECT_TIMEOUT = 1.0
FIRST_SELECT_TIMEOUT = 0.001
SELECT_BACKOFF = 0.00015


class BatchRequest(object):

    """A set of requests to perform concurrently, exactly once.

    Parameter `multiplexer` is the handle set to drive; an `AsyncMultiplexer`
    is used if none is given. Parameters `select_timeout` and `first_timeout`
    bound each wait for a transfer to finish (the first wait uses
    `first_timeout`), and `backoff` is how long to `sleep` after a failed
    wait.

    """

    def __init__(self, multiplexer=None, select_timeout=DEFAULT_SELECT_TIMEOUT,
                 first_timeout=FIRST_SELECT_TIMEOUT, backoff=SELECT_BACKOFF,
                 sleep=time.sleep):
        self.multiplexer = multiplexer
        self.select_timeout = select_timeout
        self.first_timeout = first_timeout
        self.backoff = backoff
        self.sleep = sleep
        self.items = []
        self.state = IDLE
        self.success = None

    def __len__(self):
        return len(self.items)

    def add(self, *items):
        """Registers requests with the batch.

        Each item may be a `Request`, a `Handle`, or a callable that is
        called with this `BatchRequest` to register items itself. Anything
        else is ignored.

        Returns this `BatchRequest`.

        """
        for item in items:
            if isinstance(item, Request):
                item.batch = self
                self.items.append(item)
            elif isinstance(item, Handle):
                self.items.append(item)
            elif callable(item):
                item(self)
            else:
                log.debug('Ignoring %r added to batch', item)
        return self

    def requests(self):
        return [item for item in self.items if isinstance(item, Request)]

    def handles(self):
        return [item.handle if isinstance(item, Request) else item
                for item in self.items]

    def execute(self, select_timeout=None):
        """Performs every registered request and waits for all of them.

        Returns ``True`` if every transfer succeeded and ``False`` if any of
        them recorded a transport error, or if nothing was registered. The
        outcome of each transfer is left on its `Request` (or `Handle`).

        If the batch was already executed, a `BatchError` is raised.

        """
        if not self.items:
            log.warning('No requests were made for the batch')
            return False
        if self.state != IDLE:
            raise BatchError('This batch request was already executed')
        if select_timeout is None:
            select_timeout = self.select_timeout

        for request in self.requests():
            request.apply_method()

        multiplexer = self.multiplexer
        if multiplexer is None:
            multiplexer = AsyncMultiplexer()

        handles = self.handles()
        log.debug('Executing batch of %d requests', len(handles))
        try:
            for handle in handles:
                multiplexer.add_handle(handle)
            self.drive(multiplexer, select_timeout)
            self.success = self.collect(multiplexer)
        finally:
            for handle in handles:
                multiplexer.remove_handle(handle)
            multiplexer.close()
            self.state = DRAINED
            for request in self.requests():
                request.batch = None
        return self.success

    def drive(self, multiplexer, select_timeout):
        timeout = self.first_timeout
        active = self._drain(multiplexer)
        while active:
            self.state = WAITING
            if multiplexer.select(timeout) == -1:
                self.sleep(self.backoff)
            timeout = select_timeout
            active = self._drain(multiplexer)

    def _drain(self, multiplexer):
        self.state = DRAINING
        while True:
            status, active = multiplexer.perform()
            if status != CALL_MULTI_PERFORM:
                return active

    def collect(self, multiplexer):
        """Hands each request its transfer outcome and returns whether all
        of them succeeded.

        A transfer the multiplexer never finished counts as failed.

        """
        success = True
        for item in self.items:
            handle = item.handle if isinstance(item, Request) else item
            if not handle.done:
                handle.fail(E_RECV_ERROR, 'Transfer did not complete')
            if isinstance(item, Request):
                item.receive(multiplexer.get_content(handle))
            if handle.errno:
                log.debug('Batched request to %s failed: %s', handle.url, handle.error)
                success = False
        return success

    def map(self, function):
        return [function(item) for item in self.items]

    def each(self, function):
        for item in self.items:
            function(item)
        return self

    def clear(self):
        """Forgets all registered items without performing them."""
        for request in self.requests():
            request.batch = None
        self.items = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        if exc_type is None:
            self.execute()
        else:
            self.clear()
        return False

    def __repr__(self):
        return '<BatchRequest %s of %d>' % (self.state, len(self.items))
