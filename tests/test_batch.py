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

import unittest
from unittest import mock

import httpx

from multihttp import batch as batch_module
from multihttp import transport
from multihttp.batch import BatchRequest, DRAINED, IDLE
from multihttp.errors import BatchError, MissingParameterError
from multihttp.multiplexer import (CALL_MULTI_PERFORM, M_OK, AsyncMultiplexer,
    Multiplexer)
from multihttp.request import Request
from multihttp.transport import Handle
from tests import utils


class FakeMultiplexer(Multiplexer):

    """Plays back canned `perform()` and `select()` results, finishing every
    transfer once `perform()` reports nothing active."""

    def __init__(self, performs=(), selects=(), failures=None, bodies=None):
        self.performs = list(performs)
        self.selects = list(selects)
        self.failures = failures or {}
        self.bodies = bodies or {}
        self.handles = []
        self.added_urls = []
        self.removed = []
        self.timeouts = []
        self.closed = False

    def add_handle(self, handle):
        if handle in self.handles:
            return False
        handle.reset()
        self.handles.append(handle)
        self.added_urls.append(handle.url)
        return True

    def remove_handle(self, handle):
        self.removed.append(handle)
        return True

    def perform(self):
        status, active = self.performs.pop(0) if self.performs else (M_OK, 0)
        if not active:
            self.finish()
        return status, active

    def select(self, timeout):
        self.timeouts.append(timeout)
        return self.selects.pop(0) if self.selects else 1

    def finish(self):
        for handle in self.handles:
            if handle.done:
                continue
            if handle.url in self.failures:
                handle.fail(*self.failures[handle.url])
            else:
                body = self.bodies.get(handle.url, b'ok ' + handle.url.encode('ascii'))
                handle.receive(200, {'Content-Type': 'application/json'}, body)

    def close(self):
        self.closed = True


def make_requests(*paths):
    return [Request('http://example.com/%s' % path) for path in paths]


class TestBatchRequest(unittest.TestCase):

    def test_one_failure(self):
        mux = FakeMultiplexer(failures={
            'http://example.com/b': (transport.E_COULDNT_RESOLVE_HOST, 'Could not resolve host'),
        }, bodies={
            'http://example.com/a': b'{"name": "a"}',
            'http://example.com/c': b'[1, 2]',
        })
        a, b, c = make_requests('a', 'b', 'c')
        job = BatchRequest(mux).add(a, b, c)

        self.assertFalse(job.execute())
        self.assertFalse(job.success)
        self.assertEqual(a.errno, 0)
        self.assertEqual(a.error(), None)
        self.assertEqual(a.result(), {'name': 'a'})
        self.assertEqual(b.errno, transport.E_COULDNT_RESOLVE_HOST)
        self.assertEqual(b.error(), 'Could not resolve host')
        self.assertEqual(b.result(), None)
        self.assertEqual(c.errno, 0)
        self.assertEqual(c.result(), [1, 2])

    def test_all_succeed(self):
        mux = FakeMultiplexer(bodies={'http://example.com/a': b'{}', 'http://example.com/b': b'{}'})
        job = BatchRequest(mux).add(*make_requests('a', 'b'))
        self.assertTrue(job.execute())
        self.assertEqual(job.state, DRAINED)
        self.assertEqual(len(mux.removed), 2)
        self.assertTrue(mux.closed)

    def test_empty(self):
        mux = FakeMultiplexer()
        job = BatchRequest(mux)
        self.assertFalse(job.execute())
        self.assertEqual(job.state, IDLE)
        self.assertEqual(mux.handles, [])
        self.assertFalse(mux.closed)

    def test_execute_once(self):
        job = BatchRequest(FakeMultiplexer()).add(*make_requests('a'))
        job.execute()
        self.assertRaises(BatchError, job.execute)

    def test_timeouts(self):
        sleeps = []
        mux = FakeMultiplexer(
            performs=[(CALL_MULTI_PERFORM, 2), (M_OK, 2), (M_OK, 1), (M_OK, 1), (M_OK, 0)],
            selects=[1, -1, 1])
        job = BatchRequest(mux, sleep=sleeps.append).add(*make_requests('a', 'b'))
        job.execute()
        self.assertEqual(mux.timeouts, [0.001, 1.0, 1.0])
        self.assertEqual(sleeps, [0.00015])
        self.assertEqual(mux.performs, [])

    def test_timeout_options(self):
        sleeps = []
        mux = FakeMultiplexer(performs=[(M_OK, 1), (M_OK, 1), (M_OK, 1), (M_OK, 0)],
            selects=[-1, 0, 1])
        job = BatchRequest(mux, select_timeout=5.0, first_timeout=0.01, backoff=0.5,
            sleep=sleeps.append)
        job.add(*make_requests('a'))
        job.execute(select_timeout=2.0)
        self.assertEqual(mux.timeouts, [0.01, 2.0, 2.0])
        self.assertEqual(sleeps, [0.5])

    def test_finalized_before_adding(self):
        mux = FakeMultiplexer()
        requests = make_requests('a', 'b')
        requests[1].url('http://example.com/b', maps={'#id': None})
        job = BatchRequest(mux).add(*requests)
        self.assertRaises(MissingParameterError, job.execute)
        self.assertEqual(mux.handles, [])

        requests[1].parameters({'id': 3})
        job.execute()
        self.assertEqual(mux.added_urls, ['http://example.com/a', 'http://example.com/b?id=3'])

    def test_cleanup_on_error(self):
        mux = FakeMultiplexer()
        mux.perform = mock.Mock(side_effect=RuntimeError('broken'))
        requests = make_requests('a', 'b')
        job = BatchRequest(mux).add(*requests)
        self.assertRaises(RuntimeError, job.execute)
        self.assertEqual(mux.removed, [r.handle for r in requests])
        self.assertTrue(mux.closed)
        self.assertEqual(job.state, DRAINED)
        self.assertEqual([r.batch for r in requests], [None, None])

    def test_member_cannot_execute(self):
        request = make_requests('a')[0]
        job = BatchRequest(FakeMultiplexer()).add(request)
        self.assertTrue(request.batch is job)
        self.assertRaises(BatchError, request.execute)
        job.execute()
        self.assertEqual(request.batch, None)

    def test_malformed_member(self):
        mux = FakeMultiplexer(bodies={
            'http://example.com/a': b'not json',
            'http://example.com/b': b'{"ok": true}',
        })
        a, b = make_requests('a', 'b')
        self.assertTrue(BatchRequest(mux).add(a, b).execute())
        self.assertRaises(ValueError, a.result)
        self.assertEqual(b.result(), {'ok': True})
        self.assertEqual(a.get_response_text(), 'not json')

    def test_add(self):
        handle = Handle('http://example.com/raw')
        request = make_requests('a')[0]
        more = make_requests('b', 'c')

        def register(job):
            job.add(*more)

        job = BatchRequest(FakeMultiplexer())
        self.assertTrue(job.add(request, handle, register, 'junk', None) is job)
        self.assertEqual(len(job), 4)
        self.assertEqual(job.items, [request, handle] + more)
        self.assertTrue(job.execute())
        self.assertEqual(handle.content, b'ok http://example.com/raw')

    def test_raw_handle_failure(self):
        handle = Handle('http://example.com/raw')
        mux = FakeMultiplexer(failures={'http://example.com/raw': (transport.E_OPERATION_TIMEDOUT, 'timed out')})
        self.assertFalse(BatchRequest(mux).add(handle).execute())
        self.assertEqual(handle.errno, transport.E_OPERATION_TIMEDOUT)

    def test_unfinished_transfer(self):
        mux = FakeMultiplexer()
        mux.finish = lambda: None
        request = make_requests('a')[0]
        self.assertFalse(BatchRequest(mux).add(request).execute())
        self.assertEqual(request.errno, transport.E_RECV_ERROR)
        self.assertEqual(request.error(), 'Transfer did not complete')

    def test_map_each(self):
        requests = make_requests('a', 'b')
        job = BatchRequest(FakeMultiplexer()).add(*requests)
        self.assertEqual(job.map(lambda r: r.uri.path), ['/a', '/b'])
        seen = []
        self.assertTrue(job.each(seen.append) is job)
        self.assertEqual(seen, requests)

    def test_with(self):
        mux = FakeMultiplexer()
        requests = make_requests('a', 'b')
        with BatchRequest(mux) as job:
            job.add(*requests)
        self.assertEqual(job.state, DRAINED)
        self.assertEqual(job.success, True)
        self.assertEqual(requests[0].status_code, 200)

    def test_with_exception(self):
        mux = FakeMultiplexer()
        request = make_requests('a')[0]

        def fail():
            with BatchRequest(mux) as job:
                job.add(request)
                raise ValueError('oops')

        self.assertRaises(ValueError, fail)
        self.assertEqual(mux.handles, [])
        self.assertEqual(request.batch, None)

    def test_default_multiplexer(self):
        mux = FakeMultiplexer()
        with mock.patch.object(batch_module, 'AsyncMultiplexer', return_value=mux):
            self.assertTrue(BatchRequest().add(*make_requests('a')).execute())
        self.assertTrue(mux.closed)


class TestBatchOverAsyncMultiplexer(unittest.TestCase):

    def setUp(self):
        def handler(request):
            if request.url.path == '/b':
                raise ValueError('handler broke')
            return httpx.Response(200, json={'path': request.url.path})

        def client_factory(handle, cookies=None):
            return httpx.AsyncClient(transport=httpx.MockTransport(handler), cookies=cookies)

        self.multiplexer = AsyncMultiplexer(client_factory)

    def test_failing_member(self):
        a, b, c = make_requests('a', 'b', 'c')
        job = BatchRequest(self.multiplexer).add(a, b, c)

        self.assertFalse(job.execute())
        self.assertEqual(job.state, DRAINED)
        self.assertEqual(a.error(), None)
        self.assertEqual(a.result(), {'path': '/a'})
        self.assertEqual(b.errno, transport.E_RECV_ERROR)
        self.assertTrue(b.error())
        self.assertEqual(c.error(), None)
        self.assertEqual(c.result(), {'path': '/c'})

    def test_all_succeed(self):
        a, c = make_requests('a', 'c')
        self.assertTrue(BatchRequest(self.multiplexer).add(a, c).execute())
        self.assertEqual(a.status_code, 200)


if __name__ == '__main__':
    utils.log()
    unittest.main()
