'''Custom Error classes.'''


class OmeroExtError(Exception):
    '''Base class for errors that are reported back to the calling macro.'''


class UnknownType(OmeroExtError):
    '''Error class that is raised when a type label does not name a known
    kind of object.
    '''

    def __init__(self, label):
        super(UnknownType, self).__init__(
            'Invalid type: {0}.'.format(label)
        )
        self.label = label


class InvalidType(OmeroExtError):
    '''Error class that is raised when a type label is not allowed at the
    place where it is used.
    '''

    def __init__(self, label, allowed):
        super(InvalidType, self).__init__(
            'Invalid type: {0}. Possible values are: {1}.'.format(
                label, allowed
            )
        )
        self.label = label
        self.allowed = allowed


class InvalidLink(OmeroExtError):
    '''Error class that is raised when two objects cannot be linked.'''


class RemoteFetchFailed(OmeroExtError):
    '''Error class that is raised when an object could not be retrieved from
    the repository.
    '''

    def __init__(self, kind, id, cause):
        super(RemoteFetchFailed, self).__init__(
            'Could not retrieve {0} {1}: {2}'.format(kind, id, cause)
        )
        self.kind = kind
        self.id = id
        self.cause = cause


class RemoteWriteFailed(OmeroExtError):
    '''Error class that is raised when the repository rejected a change.'''

    def __init__(self, operation, cause):
        super(RemoteWriteFailed, self).__init__(
            'Could not {0}: {1}'.format(operation, cause)
        )
        self.operation = operation
        self.cause = cause


class UnknownTable(OmeroExtError):
    '''Error class that is raised when no table is registered under a name.'''


class EmptyTable(OmeroExtError):
    '''Error class that is raised when a table that was never filled should
    be saved to the repository.
    '''


class NoInputRows(OmeroExtError):
    '''Error class that is raised when no rows were provided for a table.'''


class NoSudoSession(OmeroExtError):
    '''Error class that is raised when a sudo session should be ended but
    none was started.
    '''


class NotSupportedError(OmeroExtError):
    '''
    Error class that is raised when a feature is not supported by the program.
    '''


class RepositoryError(Exception):
    '''Error class that is raised when a call to the repository failed.'''


class NotFound(RepositoryError):
    '''Error class that is raised when an object does not exist on the
    repository.
    '''


class AccessDenied(RepositoryError):
    '''Error class that is raised when the user lacks the permission to
    access an object.
    '''


class TransportError(RepositoryError):
    '''Error class that is raised when the repository could not be reached or
    returned a response in an unexpected state.
    '''
