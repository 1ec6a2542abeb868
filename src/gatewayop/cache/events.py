import dataclasses
import typing


class Event:
    def __init_subclass__(cls, **kwargs):
        """Make subclasses available in the class namespace.
        Allows to use patterns like the following without having
        to import all the event classes.

        ```
        match type(event):
            case event.CreateEvent:
                pass
            case event.UpdateEvent:
                pass
        ```
        """
        super().__init_subclass__(**kwargs)
        setattr(Event, cls.__name__, cls)

    @property
    def object(self):
        """The current state of the object this event is about."""
        return self.obj

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.obj!r}>'


@dataclasses.dataclass(repr=False)
class CreateEvent(Event):
    obj: typing.Any


@dataclasses.dataclass(repr=False)
class UpdateEvent(Event):
    old: typing.Any
    new: typing.Any

    @property
    def object(self):
        return self.new

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.old!r} {self.new!r}>'


@dataclasses.dataclass(repr=False)
class DeleteEvent(Event):
    obj: typing.Any


@dataclasses.dataclass(repr=False)
class GenericEvent(Event):
    obj: typing.Any
