"""Custom exceptions for the stock back office."""


class BackofficeError(Exception):
    """Base exception for all application errors."""
    kind = 'internal_error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['kind'] = self.kind
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['success'] = False
        return rv


class ValidationError(BackofficeError):
    """Raised for a malformed request body."""
    kind = 'validation_error'

    def __init__(self, message, field=None):
        payload = {'field': field} if field else None
        super().__init__(message, 422, payload)
        self.field = field


class EmptyLineSet(BackofficeError):
    """Raised when a purchase write carries no line items."""
    kind = 'empty_line_set'

    def __init__(self, message="No item selected"):
        super().__init__(message, 400)


class ProductNotFound(BackofficeError):
    """Raised when a purchase line references a product that cannot be resolved."""
    kind = 'product_not_found'

    def __init__(self, product_id, line=None, detail_id=None):
        message = f"Product {product_id} not found"
        if line is not None:
            message = f"{message} (line {line})"
        elif detail_id is not None:
            message = f"{message} (purchase detail {detail_id})"
        payload = {'product_id': product_id, 'line': line, 'detail_id': detail_id}
        super().__init__(message, 404, payload)
        self.product_id = product_id
        self.line = line
        self.detail_id = detail_id


class InvalidCostRecalculation(BackofficeError):
    """Raised when an average cost recalculation would divide by zero stock."""
    kind = 'invalid_cost_recalculation'

    def __init__(self, product_id=None, resulting_stock=0):
        label = f"product {product_id}" if product_id is not None else "product"
        message = (
            f"Cannot recalculate average cost for {label}: "
            f"resulting stock would be {resulting_stock}"
        )
        super().__init__(message, 422, {'product_id': product_id})
        self.product_id = product_id
        self.resulting_stock = resulting_stock


class NotFoundError(BackofficeError):
    """Exception raised when a resource is not found."""
    kind = 'not_found'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)
