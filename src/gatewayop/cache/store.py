from ..exceptions import StoreKeyError


def meta_namespace_key_func(obj):
    """Create a key from the given object for use in a store."""
    try:
        name = obj.metadata.name
        namespace = getattr(obj.metadata, 'namespace', None)
        if namespace is not None:
            return f'{namespace}/{name}'
        else:
            return name
    except Exception as e:
        raise StoreKeyError(obj) from e


class Store:
    """Objects of one resource type, keyed by `namespace/name`."""

    def __init__(self, key_func=None):
        if key_func is None:
            key_func = meta_namespace_key_func
        self.key_func = key_func
        self._items = {}

    def __repr__(self):
        return f'<Store {len(self)} items>'

    def __len__(self):
        return len(self._items)

    def __contains__(self, obj):
        return self.key_func(obj) in self._items

    def __getitem__(self, key):
        return self._items[key]

    def add(self, obj):
        """Add or replace the given object."""
        self._items[self.key_func(obj)] = obj

    update = add

    def delete(self, obj):
        """Delete the given object, it's fine if we never had it."""
        self._items.pop(self.key_func(obj), None)

    def get(self, obj):
        """Return the stored version of the given object.
        Raises KeyError if there is none.
        """
        return self._items[self.key_func(obj)]

    def keys(self):
        return self._items.keys()

    def list(self, namespace=None):
        """Return all objects, optionally only those of one namespace."""
        if namespace is None:
            return list(self._items.values())
        return [
            obj for obj in self._items.values()
            if getattr(obj.metadata, 'namespace', None) == namespace
        ]

    def clear(self):
        self._items.clear()
