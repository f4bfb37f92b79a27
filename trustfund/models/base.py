from sqlalchemy.orm import declarative_base

Base = declarative_base()


def enum_values(enum_cls):
    """Persist enum values rather than member names"""
    return [member.value for member in enum_cls]

# Largest value a BigInteger column holds
BIGINT_MAX = 2 ** 63 - 1

# Upper bound for any single goal, principal or tip, in rupees
MAX_AMOUNT = 10 ** 12
