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

A convenience client for talking to one HTTP API.

A `Client` holds the API's base URL and the headers to send with every
request, makes `Request` instances for paths relative to that base, and
collects requests into batches::

    >>> api = Client('https://api.example.com/v1/', headers={'Accept': 'application/json'})
    >>> with api.batch_request() as batch:
    ...     batch.add(api.request('users/1'), api.request('users/2'))

The batch is executed automatically at the end of the ``with`` block.

"""

import logging
import traceback

from multihttp.batch import BatchRequest
from multihttp.errors import BatchError
from multihttp.request import DEFAULT_USER_AGENT, GET, Request
from multihttp.transport import DEFAULT_TIMEOUT
from multihttp.uri import Uri


__all__ = ('Client', 'Request')

log = logging.getLogger(__name__)


class Client(object):

    """Makes requests against one base URL.

    Parameter `base_url` is the URL that request URLs are merged onto.
    Parameter `headers` is a mapping of headers sent with every request.
    Parameter `transport` is the `Transport` for single requests, and
    `multiplexer_factory`, if given, is called to make the multiplexer for
    each batch.

    """

    def __init__(self, base_url=None, headers=None, transport=None,
                 multiplexer_factory=None, user_agent=DEFAULT_USER_AGENT,
                 timeout=DEFAULT_TIMEOUT, verify_ssl=True):
        self.base_url = base_url
        self.headers = dict(headers or {})
        self.transport = transport
        self.multiplexer_factory = multiplexer_factory
        self.user_agent = user_agent
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.batchrequest = None
        self._opened = None

    def url(self, url=None):
        """Returns a `Uri` for `url` merged onto the base URL."""
        uri = Uri(str(self.base_url)) if self.base_url else Uri()
        if not url:
            return uri
        if self.base_url:
            return uri.merge(str(url))
        return uri.decode(str(url))

    def request(self, url=None, method=GET):
        """Returns a new `Request` for `url` relative to the base URL,
        configured with the client's defaults."""
        request = Request(self.url(url), transport=self.transport)
        request.verify_ssl = self.verify_ssl
        return (request.method(method)
                .set_user_agent(self.user_agent)
                .set_header(self.headers)
                .set_timeout(self.timeout))

    def batch_request(self, **options):
        """Opens a batch request.

        Keyword `options` are passed on to `BatchRequest`. If a batch request
        is already open, a `BatchError` is raised.

        You can use this method with the ``with`` statement::

        >>> with client.batch_request() as batch:
        ...     batch.add(client.request('users/1'))

        The batch request is then completed automatically at the end of the
        ``with`` block.

        """
        if self.batchrequest is not None:
            # hey, we already have a request. this is invalid...
            log.debug('Batch request previously opened at:\n'
                + ''.join(traceback.format_list(self._opened)))
            log.debug('New now at:\n' + ''.join(traceback.format_stack()))
            raise BatchError("There's already an open batch request")
        if self.multiplexer_factory is not None:
            options.setdefault('multiplexer', self.multiplexer_factory())
        self.batchrequest = BatchRequest(**options)
        self._opened = traceback.extract_stack()

        # Return ourself so we can enter a "with" context.
        return self

    def batch(self, *items):
        """Adds the given requests to the open batch request.

        If no batch request is open, a `BatchError` is raised.

        """
        if self.batchrequest is None:
            raise BatchError("There's no open batch request to add an object to")
        self.batchrequest.add(*items)
        return self.batchrequest

    def complete_batch(self, select_timeout=None):
        """Closes the open batch request, performing all its requests.

        Returns whether every request in the batch succeeded. If no batch
        request is open, a `BatchError` is raised.

        """
        if self.batchrequest is None:
            raise BatchError("There's no open batch request to complete")
        batchrequest = self.batchrequest
        try:
            log.debug('Making batch request for %d items', len(batchrequest))
            return batchrequest.execute(select_timeout)
        finally:
            self.batchrequest = None
            self._opened = None

    def clear_batch(self):
        """Closes a batch request without performing it."""
        if self.batchrequest is not None:
            self.batchrequest.clear()
        self.batchrequest = None
        self._opened = None

    def __enter__(self):
        if self.batchrequest is None:
            self.batch_request()
        return self.batchrequest

    def __exit__(self, exc_type, exc_value, tb):
        if exc_type is None:
            self.complete_batch()
        else:
            # Exception! Let's forget the whole thing.
            self.clear_batch()
        return False
