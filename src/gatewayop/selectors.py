"""
Label selectors as used by Kubernetes.

A selector is plain data: `matchLabels` plus a list of `matchExpressions`.
It can be built from the dict form used in manifests or parsed from the
string form used on the command line, e.g.::

    app=gateway,tier in (edge, internal),!legacy

All requirements must match (logical AND). An empty selector matches
everything.
"""
import dataclasses
import re
import typing

from .exceptions import ConfigurationError
from .invocation import nonblocking


__all__ = [
    'LabelSelector',
    'Requirement',
    'label_selector_predicate',
]


IN = 'In'
NOT_IN = 'NotIn'
EXISTS = 'Exists'
DOES_NOT_EXIST = 'DoesNotExist'

_OPERATORS = (IN, NOT_IN, EXISTS, DOES_NOT_EXIST)

_REQUIREMENT = re.compile(
    r'''
    ^\s*(?:
        !\s*(?P<absent>[^\s,=!()]+)
      | (?P<key>[^\s,=!()]+)
        (?:
            \s*(?P<op>==|=|!=)\s*(?P<value>[^\s,=!()]*)
          | \s+(?P<setop>in|notin)\s*\((?P<values>[^()]*)\)
        )?
    )\s*$
    ''',
    re.VERBOSE,
)


def _split_requirements(text):
    """Split on commas that are not inside parentheses."""
    parts = []
    depth = 0
    current = []
    for char in text:
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth < 0:
                raise ConfigurationError(f'unbalanced parentheses in selector: {text!r}')
        if char == ',' and depth == 0:
            parts.append(''.join(current))
            current = []
        else:
            current.append(char)
    if depth != 0:
        raise ConfigurationError(f'unbalanced parentheses in selector: {text!r}')
    parts.append(''.join(current))
    return parts


@dataclasses.dataclass(frozen=True)
class Requirement:
    key: str
    operator: str
    values: typing.Tuple[str, ...] = ()

    def __post_init__(self):
        if self.operator not in _OPERATORS:
            raise ConfigurationError(f'unknown selector operator: {self.operator!r}')
        if self.operator in (IN, NOT_IN) and not self.values:
            raise ConfigurationError(f'operator {self.operator} needs values: {self.key!r}')
        if self.operator in (EXISTS, DOES_NOT_EXIST) and self.values:
            raise ConfigurationError(f'operator {self.operator} takes no values: {self.key!r}')

    def matches(self, labels: typing.Mapping[str, str]) -> bool:
        match self.operator:
            case 'In':
                return self.key in labels and labels[self.key] in self.values
            case 'NotIn':
                return self.key not in labels or labels[self.key] not in self.values
            case 'Exists':
                return self.key in labels
            case 'DoesNotExist':
                return self.key not in labels

    def __str__(self):
        match self.operator:
            case 'In':
                return f'{self.key} in ({",".join(self.values)})'
            case 'NotIn':
                return f'{self.key} notin ({",".join(self.values)})'
            case 'Exists':
                return self.key
            case 'DoesNotExist':
                return f'!{self.key}'


@dataclasses.dataclass(frozen=True)
class LabelSelector:
    match_labels: typing.Mapping[str, str] = dataclasses.field(default_factory=dict)
    match_expressions: typing.Tuple[Requirement, ...] = ()

    @classmethod
    def from_dict(cls, d):
        """Create a selector from its manifest form:
        `{'matchLabels': {...}, 'matchExpressions': [{'key', 'operator', 'values'}]}`
        """
        d = d or {}
        expressions = tuple(
            Requirement(
                key=expr['key'],
                operator=expr['operator'],
                values=tuple(expr.get('values') or ()),
            )
            for expr in d.get('matchExpressions') or ()
        )
        return cls(
            match_labels=dict(d.get('matchLabels') or {}),
            match_expressions=expressions,
        )

    @classmethod
    def parse(cls, text):
        """Parse the string form, e.g. `a=b,c!=d,e in (f,g),h,!i`."""
        if text is None or not text.strip():
            return cls()
        match_labels = {}
        expressions = []
        for part in _split_requirements(text):
            m = _REQUIREMENT.match(part)
            if m is None:
                raise ConfigurationError(f'invalid label selector: {text!r}')
            if m['absent'] is not None:
                expressions.append(Requirement(m['absent'], DOES_NOT_EXIST))
            elif m['op'] in ('=', '=='):
                if m['key'] not in match_labels:
                    match_labels[m['key']] = m['value']
                elif match_labels[m['key']] != m['value']:
                    # Requirements are ANDed, a second value for the same
                    # key must match as well.
                    expressions.append(Requirement(m['key'], IN, (m['value'],)))
            elif m['op'] == '!=':
                expressions.append(Requirement(m['key'], NOT_IN, (m['value'],)))
            elif m['setop'] is not None:
                values = tuple(v.strip() for v in m['values'].split(',') if v.strip())
                operator = IN if m['setop'] == 'in' else NOT_IN
                expressions.append(Requirement(m['key'], operator, values))
            else:
                expressions.append(Requirement(m['key'], EXISTS))
        return cls(match_labels=match_labels, match_expressions=tuple(expressions))

    def is_empty(self):
        return not self.match_labels and not self.match_expressions

    def matches(self, labels) -> bool:
        labels = labels or {}
        for key, value in self.match_labels.items():
            if labels.get(key) != value:
                return False
        return all(expr.matches(labels) for expr in self.match_expressions)

    def to_dict(self):
        d = {}
        if self.match_labels:
            d['matchLabels'] = dict(self.match_labels)
        if self.match_expressions:
            d['matchExpressions'] = [
                {'key': e.key, 'operator': e.operator, 'values': list(e.values)}
                if e.values else {'key': e.key, 'operator': e.operator}
                for e in self.match_expressions
            ]
        return d

    def __str__(self):
        parts = [f'{k}={v}' for k, v in self.match_labels.items()]
        parts.extend(str(e) for e in self.match_expressions)
        return ','.join(parts)


def _labels_of(obj):
    if obj is None:
        return {}
    metadata = getattr(obj, 'metadata', None)
    return getattr(metadata, 'labels', None) or {}


def label_selector_predicate(selector: LabelSelector):
    """Return an event predicate that passes events whose object matches
    the given selector.

    Only the current state of the object is looked at, which is the new
    object for update events. An object that stops matching therefore
    does not pass with the very update that removed the label.
    """

    @nonblocking
    def predicate(event):
        return selector.matches(_labels_of(event.object))

    predicate.selector = selector
    return predicate
