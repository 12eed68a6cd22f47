from sqlalchemy.types import SmallInteger, TypeDecorator


class IntEnumType(TypeDecorator):
    """Store an ``IntEnum`` as its integer value, load it back as the enum"""
    impl = SmallInteger
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self.enum_class(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)
