class GraphError(Exception):
    pass


class DuplicateIdError(GraphError):
    pass


class NotFoundError(GraphError):
    pass


class InvalidReferenceError(GraphError):
    pass


class TransactionError(GraphError):
    pass


class TransactionInProgressError(TransactionError):
    pass


class GraphLoadError(GraphError):
    pass
