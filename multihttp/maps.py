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

Declarative parameter mapping.

A mapping specification describes how the fields of a request are drawn from
a flat bag of arguments. It is usually written in a compact notation and
compiled with `compile_maps()`:

* ``'name'`` or ``'name': default`` is a leaf rule. A leading ``#`` marks the
  field as required, and ``'new:old'`` emits the argument ``old`` under the
  name ``new``.
* An integer key with a list value is a choice group: at least one of the
  alternatives has to produce a value.
* A string key with a dict (or list) value is a nested rule, resolved against
  the same arguments to produce the value for that key.

For example::

    >>> resolve({'#q': None, 'page:p': 1, 0: ['user', 'group']},
    ...         {'q': 'cats', 'group': 'pets'})
    {'q': 'cats', 'page': 1, 'group': 'pets'}

Resolution never modifies the specification or the arguments.

"""

from collections.abc import Mapping
import logging

from multihttp.errors import ChoiceGroupError, ConfigurationError, MissingParameterError


log = logging.getLogger(__name__)


def is_empty(value):
    """Returns whether `value` counts as absent.

    `None`, `False`, blank strings and empty containers are empty. Numbers,
    zero included, are not.

    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (bytes, Mapping, list, tuple, set, frozenset)):
        return len(value) == 0
    return False


class Rule(object):

    """A node of a mapping specification."""

    def resolve(self, args):
        """Returns the dict of fields this rule produces from `args`."""
        raise NotImplementedError()


class LeafRule(Rule):

    """A single field, looked up in the arguments or taken from a default."""

    def __init__(self, key, default=None):
        self.key = key
        name = key
        self.required = name.startswith('#')
        if self.required:
            name = name[1:]
        source = name
        if name.find(':') > 0:
            name, source = name.split(':', 1)
        self.name = name
        self.source = source
        self.default = default

    def resolve(self, args):
        for candidate in (self.key, self.name):
            if args.get(candidate) is not None:
                return {self.name: args[candidate]}

        value = args.get(self.source)
        if not is_empty(value):
            return {self.name: value}

        value = self.fallback(args)
        if not is_empty(value):
            return {self.name: value}
        if self.required:
            raise MissingParameterError(self.name)
        return {}

    def fallback(self, args):
        return self.default

    def __repr__(self):
        return '<%s %r>' % (type(self).__name__, self.key)


class NestedRule(LeafRule):

    """A field whose value is the result of resolving a child specification.

    Errors raised while resolving the child are not propagated; the child just
    counts as empty, and only this rule's own required marker decides whether
    that is an error.

    """

    def __init__(self, key, spec):
        super(NestedRule, self).__init__(key)
        self.spec = spec

    def fallback(self, args):
        try:
            return self.spec.resolve(args)
        except ConfigurationError as exc:
            log.debug('Nested rule %r resolved to nothing: %s', self.key, exc)
            return None


class GroupRule(Rule):

    """A choice group: the fields of every alternative that resolves, with the
    first value winning when alternatives produce the same field."""

    def __init__(self, spec):
        self.spec = spec

    def resolve(self, args):
        data = {}
        for _, rule in self.spec:
            try:
                fields = rule.resolve(args)
            except ConfigurationError:
                continue
            for key, value in fields.items():
                data.setdefault(key, value)
        if not data:
            raise ChoiceGroupError(
                [rule.name for _, rule in self.spec if hasattr(rule, 'name')])
        return data

    def __repr__(self):
        return '<GroupRule %r>' % (self.spec,)


class MapSpec(object):

    """An ordered collection of keyed rules.

    Rules are resolved in order, and fields produced by later rules replace
    those of earlier ones.

    """

    def __init__(self, rules=()):
        self.rules = list(rules)

    def resolve(self, args):
        data = {}
        for _, rule in self.rules:
            data.update(rule.resolve(args))
        return data

    def merge(self, other):
        """Returns a new `MapSpec` with the rules of `other` added.

        Rules with string keys replace rules of this spec with the same key;
        rules with integer keys (choice groups and bare names) are appended.

        """
        rules = list(self.rules)
        for key, rule in compile_maps(other):
            if isinstance(key, str):
                for i, (existing, _) in enumerate(rules):
                    if existing == key:
                        rules[i] = (key, rule)
                        break
                else:
                    rules.append((key, rule))
            else:
                rules.append((key, rule))
        return MapSpec(rules)

    def __iter__(self):
        return iter(self.rules)

    def __len__(self):
        return len(self.rules)

    def __repr__(self):
        return 'MapSpec(%r)' % ([rule for _, rule in self.rules],)


def compile_rule(key, item):
    if isinstance(item, Rule):
        return item
    if isinstance(key, int):
        if isinstance(item, (Mapping, list, tuple, MapSpec)):
            return GroupRule(compile_maps(item))
        return LeafRule(item)
    if isinstance(item, (Mapping, list, tuple, MapSpec)):
        return NestedRule(key, compile_maps(item))
    return LeafRule(key, item)


def compile_maps(maps):
    """Builds a `MapSpec` from the compact dict/list notation.

    A `MapSpec` is returned unchanged, and `None` gives an empty one.

    """
    if maps is None:
        return MapSpec()
    if isinstance(maps, MapSpec):
        return maps
    if isinstance(maps, Mapping):
        items = maps.items()
    else:
        items = enumerate(maps)
    return MapSpec((key, compile_rule(key, item)) for key, item in items)


def resolve(maps, args):
    """Resolves the mapping specification `maps` against the argument
    mapping `args`.

    Raises `MissingParameterError` when a required field has no value and
    `ChoiceGroupError` when no alternative of a choice group has one.

    """
    return compile_maps(maps).resolve(args)
