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

multihttp builds outbound HTTP requests from declarative parameter maps and
performs them singly or concurrently in batches.

Configure a `Request` with a URL, an argument bag, and mapping rules that
pick the query and form fields out of the arguments; then execute it for a
decoded response. To fetch many resources at once, add your requests to a
`BatchRequest` and execute it: all transfers run over one polling loop, and
each request keeps its own outcome.

A `Client` holds a base URL and default headers for an API, and opens batch
requests usable with the ``with`` statement.

"""

import logging

from multihttp.batch import BatchRequest
from multihttp.client import Client
from multihttp.errors import (BatchError, ChoiceGroupError, ConfigurationError,
    HttpError, MissingParameterError, TransportError)
from multihttp.request import Request
from multihttp.uri import Uri


__version__ = '1.0'
__date__ = '19 October 2026'
__author__ = 'Six Apart Ltd.'
__credits__ = """Brad Choate
Mike Malone
Mark Paschal"""

logging.getLogger(__name__).addHandler(logging.NullHandler())
