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

from multihttp.batch import DRAINED
from multihttp.client import Client
from multihttp.errors import BatchError
from multihttp.request import DEFAULT_USER_AGENT
from tests import utils
from tests.test_batch import FakeMultiplexer
from tests.test_request import StubTransport


class TestClient(unittest.TestCase):

    def test_url(self):
        client = Client('https://api.example.com/v1/?key=abc')
        self.assertEqual(str(client.url('users/1')), 'https://api.example.com/v1/users/1?key=abc')
        self.assertEqual(str(client.url('/status')), 'https://api.example.com/status?key=abc')
        self.assertEqual(str(client.url('users?page=2')),
            'https://api.example.com/v1/users?key=abc&page=2')
        self.assertEqual(str(client.url('http://other.example.com/x')),
            'http://other.example.com/x?key=abc')
        self.assertEqual(str(client.url()), 'https://api.example.com/v1/?key=abc')
        self.assertEqual(str(Client().url('http://example.com/a')), 'http://example.com/a')

    def test_request(self):
        stub = StubTransport(b'{"id": 1}', 'application/json')
        client = Client('http://api.example.com/', headers={'accept': 'application/json'},
            transport=stub, timeout=7, verify_ssl=False)
        request = client.request('users', 'post')
        self.assertEqual(request.http_method, 'POST')
        self.assertEqual(request.handle.timeout, 7)
        self.assertFalse(request.verify_ssl)
        self.assertEqual(request.execute(), {'id': 1})
        self.assertEqual(stub.sent[0]['url'], 'http://api.example.com/users')
        self.assertEqual(stub.sent[0]['headers'], {
            'Accept': 'application/json',
            'User-Agent': DEFAULT_USER_AGENT,
        })

    def test_requests_are_independent(self):
        client = Client('http://api.example.com/a/')
        first = client.request('b')
        client.request('c')
        self.assertEqual(str(first.uri), 'http://api.example.com/a/b')


class TestClientBatches(unittest.TestCase):

    def setUp(self):
        self.muxes = []

        def factory():
            mux = FakeMultiplexer()
            self.muxes.append(mux)
            return mux

        self.client = Client('http://api.example.com/', multiplexer_factory=factory)

    def test_batch(self):
        client = self.client
        self.assertTrue(client.batch_request() is client)
        job = client.batch(client.request('one'), client.request('two'))
        self.assertEqual(len(job), 2)
        self.assertTrue(client.complete_batch())
        self.assertEqual(job.state, DRAINED)
        self.assertEqual(self.muxes[0].added_urls,
            ['http://api.example.com/one', 'http://api.example.com/two'])
        self.assertEqual(client.batchrequest, None)

    def test_batch_options(self):
        self.client.batch_request(select_timeout=0.25)
        self.assertEqual(self.client.batchrequest.select_timeout, 0.25)
        self.client.clear_batch()

    def test_batch_client_errors(self):
        client = self.client
        self.assertRaises(BatchError, client.complete_batch)
        self.assertRaises(BatchError, client.batch, client.request('tiny'))

        client.batch_request()
        self.assertRaises(BatchError, client.batch_request)

        client.clear_batch()
        self.assertRaises(BatchError, client.complete_batch)
        # Clearing twice is fine.
        client.clear_batch()

    def test_with(self):
        client = self.client
        request = client.request('moose')
        with client.batch_request() as job:
            self.assertTrue(job is client.batchrequest)
            job.add(request)
        self.assertEqual(client.batchrequest, None)
        self.assertEqual(request.status_code, 200)
        self.assertTrue(self.muxes[0].closed)

    def test_with_opens_batch(self):
        client = self.client
        with client as job:
            job.add(client.request('fred'))
        self.assertEqual(job.state, DRAINED)
        self.assertEqual(client.batchrequest, None)

    def test_with_exception(self):
        client = self.client
        request = client.request('moose')

        def fail():
            with client.batch_request() as job:
                job.add(request)
                raise KeyError('oops')

        self.assertRaises(KeyError, fail)
        self.assertEqual(client.batchrequest, None)
        self.assertEqual(request.batch, None)
        self.assertEqual(self.muxes[0].handles, [])
        # A new batch can be opened afterwards.
        client.batch_request()
        client.clear_batch()


if __name__ == '__main__':
    utils.log()
    unittest.main()
