"""Exceptions raised by the voting engine."""


class VotingException(Exception):
    pass


class VotesNotFound(VotingException):
    """No votes were cast for the requested class."""


class ConfigurationInvalid(VotingException):
    """A configured strategy or type name is not recognized."""


class ClassifierUnavailable(VotingException):
    """The global classifier model is missing, invalid or could not be unpacked."""


class DataInconsistency(VotingException):
    """Persisted data is incomplete or contradicts itself."""
