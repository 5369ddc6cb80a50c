"""
bankportal.models — Модели данных портала.

Реэкспорт основных классов для удобства:
    from bankportal.models import CustomerRead, TagResolution
"""

from bankportal.models.enums import (  # noqa: F401
    Currency,
    CustomerStatus,
    P2PType,
    PaymentMethod,
    RequestKind,
    RequestStatus,
    TransactionType,
)
from bankportal.models.customer import CustomerCreate, CustomerRead, WithdrawalAccountRead  # noqa: F401
from bankportal.models.tags import (  # noqa: F401
    CustomerResolution,
    SpecialTagRead,
    SpecialTagResolution,
    TagNotFound,
    TagResolution,
)
from bankportal.models.requests import (  # noqa: F401
    DepositRequestRead,
    P2PParty,
    P2PRequestRead,
    RequestStatusRead,
    WithdrawalRequestRead,
)
