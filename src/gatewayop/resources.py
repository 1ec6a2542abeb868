import dataclasses
from dataclasses import dataclass
from typing import dataclass_transform

import yaml

from lightkube.core import resource as lkr
from lightkube.core.schema import DictMixin


__all__ = [
    'ModelMixin',
    'api_version_and_kind',
    'describe',
    'get_resource',
    'is_namespaced_resource',
    'is_same_version',
    'object_key',
    'resource',
    'resources_to_yaml',
]


_resource_verbs = [
    'delete',
    'deletecollection',
    'get',
    'global_list',
    'global_watch',
    'list',
    'patch',
    'post',
    'put',
    'watch',
]

_subresource_verbs = [
    'get',
    'patch',
    'put',
]


def get_resource(resource: lkr.Resource) -> lkr.Resource:
    """Ensure lightkube Resources known their own apiVersion and kind.
    See: https://github.com/gtsystem/lightkube/issues/76
    """
    info = lkr.api_info(resource)
    try:
        if getattr(resource, 'apiVersion', None) in ('', None):
            resource.apiVersion = info.resource.api_version
        if getattr(resource, 'kind', None) in ('', None):
            resource.kind = info.resource.kind
    except AttributeError:
        pass
    return resource


def is_namespaced_resource(resource):
    return issubclass(resource, (lkr.NamespacedResource, lkr.NamespacedSubResource))


def is_same_version(o1, o2):
    o1_resource_version = o1.metadata.resourceVersion
    o2_resource_version = o2.metadata.resourceVersion
    return (
        o1_resource_version is not None and o1_resource_version == o2_resource_version
    )


def api_version_and_kind(obj):
    """Return the apiVersion and kind of an object.
    Objects returned from list calls do not carry them, so we fall back
    to the resource class.
    """
    api_version = getattr(obj, 'apiVersion', None)
    kind = getattr(obj, 'kind', None)
    if not api_version or not kind:
        info = lkr.api_info(type(obj))
        api_version = info.resource.api_version
        kind = info.resource.kind
    return api_version, kind


def object_key(obj):
    """Return the `namespace/name` key of the given object."""
    namespace = getattr(obj.metadata, 'namespace', None)
    if namespace is not None:
        return f'{namespace}/{obj.metadata.name}'
    return obj.metadata.name


def describe(obj):
    """Short human readable identification of an object for log messages."""
    api_version, kind = api_version_and_kind(obj)
    out = [f'{api_version}/{kind}', object_key(obj)]
    resource_version = getattr(obj.metadata, 'resourceVersion', None)
    if resource_version is not None:
        out.append(resource_version)
    return ' '.join(out)


class ModelMixin(DictMixin):
    @classmethod
    def from_dict(cls, d, lazy=True):
        # Custom Resource models can not be lazy.
        lazy = False
        if isinstance(d, cls):
            return d
        else:
            return super(ModelMixin, cls).from_dict(d, lazy=lazy)


# @see https://mypy.readthedocs.io/en/stable/additional_features.html
@dataclass_transform()
def resource(group, version, kind=None, plural=None, scope='Namespaced'):
    """Turn the decorated dataclass into a lightkube resource.

    The model must declare `apiVersion`, `kind`, `metadata` and, if the
    resource has a status subresource, `status` fields. A `Status`
    subresource class is attached when a `status` field exists.
    """

    def _wrap(model):
        if not dataclasses.is_dataclass(model):
            model = dataclass(model, kw_only=True)

        _kind = kind or model.__name__
        _plural = plural
        if _plural is None:
            singular = _kind.lower()
            _plural = f'{singular}es' if singular.endswith('s') else f'{singular}s'

        if scope == 'Cluster':
            base, status_base = lkr.GlobalResource, lkr.GlobalSubResource
        else:
            base, status_base = lkr.NamespacedResourceG, lkr.NamespacedSubResource

        namespace = {
            '__module__': model.__module__,
            '__qualname__': model.__qualname__,
            '__doc__': model.__doc__,
        }
        # Subclass the model so its dataclass fields and __init__ are kept.
        _Resource = type(_kind, (model, base, ModelMixin), dict(namespace))
        _Resource._api_info = lkr.ApiInfo(
            resource=lkr.ResourceDef(group, version, _kind),
            plural=_plural,
            verbs=_resource_verbs,
        )

        field_names = {f.name for f in dataclasses.fields(model)}
        if 'status' in field_names:
            _Status = type(
                f'{_kind}Status',
                (model, status_base, ModelMixin),
                dict(namespace, __qualname__=f'{model.__qualname__}.Status'),
            )
            _Status._api_info = lkr.ApiInfo(
                resource=_Resource._api_info.resource,
                parent=_Resource._api_info.resource,
                plural=_plural,
                verbs=_subresource_verbs,
                action='status',
            )
            _Resource.Status = _Status

        return _Resource

    return _wrap


class YamlDumper(yaml.SafeDumper):
    def ignore_aliases(self, data):
        return True


def resources_to_yaml(*objects):
    """Serialize one or more objects to a yaml document stream.

    We prevent the yaml Dumper from using any alias references as
    kubernetes does not understand those.
    """
    dicts = [obj.to_dict() for obj in objects]
    return yaml.dump_all(dicts, sort_keys=False, Dumper=YamlDumper)
