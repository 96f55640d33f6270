"""Exceptions raised by reactime."""


class ReactimeError(Exception):
    """Base class for reactime errors."""


class PushOnlyError(ReactimeError, TypeError):
    """A combinator that reacts to pushes was given a pull (Computed) input.

    A pull signal never pushes, so the combinator would silently never fire.
    """
