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

Exceptions raised by `multihttp` when a request cannot be composed,
performed, or batched.

"""


class HttpError(Exception):
    """Base class for all `multihttp` errors."""
    pass


class ConfigurationError(HttpError):
    """An Exception raised when a request's mapping rules, arguments, or
    options cannot be turned into a transport-ready request."""
    pass


class MissingParameterError(ConfigurationError):
    """An exception raised when a required mapping rule resolves to no
    value."""
    def __init__(self, key):
        self.key = key
        super(MissingParameterError, self).__init__(
            'Missing required parameter %r' % (key,)
        )


class ChoiceGroupError(ConfigurationError):
    """An exception raised when none of the alternatives of a choice group
    resolve to a value."""
    def __init__(self, keys=()):
        self.keys = tuple(keys)
        super(ChoiceGroupError, self).__init__(
            'Choice group unsatisfied: one of %s is required'
            % (', '.join(self.keys) or 'the alternatives',)
        )


class TransportError(HttpError):
    """An exception raised when a synchronously executed request fails at
    the transport level."""
    def __init__(self, errno, message):
        self.errno = errno
        self.message = message
        super(TransportError, self).__init__(
            'Transport error %d: %s' % (self.errno, self.message)
        )


class BatchError(HttpError):
    """An Exception raised when a batch cannot be opened, added to, or
    executed."""
    pass
