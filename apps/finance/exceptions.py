class BillingError(Exception):
    """Base class for configuration and programming errors in billing."""


class ClassGroupNotFound(BillingError):
    def __init__(self, class_group_id):
        self.class_group_id = class_group_id
        super().__init__(f"Class group not found: {class_group_id}")


class StudentNotFound(BillingError):
    def __init__(self, student_id):
        self.student_id = student_id
        super().__init__(f"Student not found: {student_id}")


class BillingPageNotFound(BillingError):
    def __init__(self, page_id):
        self.page_id = page_id
        super().__init__(f"Extra billing page not found: {page_id}")
