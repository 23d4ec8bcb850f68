"""
Chart of accounts service.

Codes follow the Colombian PUC: the first digit gives the
account class (and so its type and nature), and the length of
the code gives its level in the hierarchy:

    3        PATRIMONIO                   level 1
    32       RESERVAS                     level 2
    3205     RESERVAS OBLIGATORIAS        level 3
    320501   FONDO DE RESERVA LEY 675     level 4 (accepts posting)
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from condo_ledger.exceptions import (
    AccountNotFoundError,
    AccountNotPostableError,
    DuplicateAccountError,
)
from condo_ledger.models.chart_account import ChartAccount
from condo_ledger.models.enums import AccountType, AccountNature
from condo_ledger.schemas.chart import ChartAccountCreate

logger = logging.getLogger(__name__)


# First digit of the code -> (type, nature)
CLASS_ATTRIBUTES: dict[str, tuple[AccountType, AccountNature]] = {
    "1": (AccountType.ASSET, AccountNature.DEBIT),
    "2": (AccountType.LIABILITY, AccountNature.CREDIT),
    "3": (AccountType.EQUITY, AccountNature.CREDIT),
    "4": (AccountType.INCOME, AccountNature.CREDIT),
    "5": (AccountType.EXPENSE, AccountNature.DEBIT),
    "6": (AccountType.EXPENSE, AccountNature.DEBIT),
    "7": (AccountType.EXPENSE, AccountNature.DEBIT),
    # Memorandum accounts
    "8": (AccountType.ASSET, AccountNature.DEBIT),
    "9": (AccountType.LIABILITY, AccountNature.CREDIT),
}

# Code length -> level
CODE_LENGTH_LEVELS: dict[int, int] = {1: 1, 2: 2, 4: 3, 6: 4, 8: 5, 10: 6}
LEVEL_CODE_LENGTHS: dict[int, int] = {v: k for k, v in CODE_LENGTH_LEVELS.items()}


# (code, name, accepts_posting, requires_third_party)
DEFAULT_CHART: list[tuple[str, str, bool, bool]] = [
    ("1", "ACTIVO", False, False),
    ("11", "EFECTIVO Y EQUIVALENTES", False, False),
    ("1105", "CAJA", False, False),
    ("110505", "CAJA GENERAL", True, False),
    ("1110", "BANCOS", False, False),
    ("111005", "MONEDA NACIONAL", True, False),
    ("13", "DEUDORES", False, False),
    ("1305", "CLIENTES", False, False),
    ("130505", "CUOTAS DE ADMINISTRACION POR COBRAR", True, True),
    ("2", "PASIVO", False, False),
    ("22", "PROVEEDORES", False, False),
    ("2205", "NACIONALES", False, False),
    ("220505", "PROVEEDORES NACIONALES", True, True),
    ("3", "PATRIMONIO", False, False),
    ("32", "RESERVAS", False, False),
    ("3205", "RESERVAS OBLIGATORIAS", False, False),
    ("320501", "FONDO DE RESERVA (LEY 675)", True, False),
    ("4", "INGRESOS", False, False),
    ("41", "OPERACIONALES", False, False),
    ("4135", "CUOTAS Y CONTRIBUCIONES", False, False),
    ("413501", "CUOTAS DE ADMINISTRACION", True, False),
    ("413502", "CUOTAS EXTRAORDINARIAS", True, False),
    ("413505", "MULTAS Y SANCIONES", True, False),
    ("413506", "INTERESES DE MORA", True, False),
    ("5", "GASTOS", False, False),
    ("53", "NO OPERACIONALES", False, False),
    ("5305", "APROPIACIONES", False, False),
    ("530502", "APROPIACION FONDO DE RESERVA", True, False),
]


def derive_account_attributes(
    code: str,
) -> tuple[AccountType, AccountNature, int, str | None]:
    """Return (type, nature, level, parent_code) implied by a PUC code."""
    account_type, nature = CLASS_ATTRIBUTES.get(
        code[:1], (AccountType.ASSET, AccountNature.DEBIT)
    )
    level = CODE_LENGTH_LEVELS.get(len(code), 1)
    parent_code = None
    if level > 1:
        parent_code = code[:LEVEL_CODE_LENGTHS[level - 1]]
    return account_type, nature, level, parent_code


class ChartOfAccountsService:

    def __init__(self, db: Session):
        self.db = db

    def create_account(
        self, scope_id: int, request: ChartAccountCreate
    ) -> ChartAccount:
        """
        Create a new account in a scope's chart.

        Raises DuplicateAccountError if the code already exists
        for the scope.
        """
        if self.get_account_by_code(scope_id, request.code) is not None:
            raise DuplicateAccountError(request.code, scope_id)

        account_type, nature, level, parent_code = derive_account_attributes(
            request.code
        )
        parent_code = request.parent_code or parent_code
        parent = None
        if parent_code:
            parent = self.get_account_by_code(scope_id, parent_code)

        account = ChartAccount(
            scope_id=scope_id,
            code=request.code,
            name=request.name,
            description=request.description,
            account_type=request.account_type or account_type,
            nature=request.nature or nature,
            level=request.level or level,
            parent_id=parent.id if parent else None,
            accepts_posting=request.accepts_posting,
            requires_third_party=request.requires_third_party,
        )
        self.db.add(account)
        self.db.flush()
        logger.info(
            "chart_account_created",
            extra={"scope_id": scope_id, "code": account.code},
        )
        return account

    def get_account(self, account_id: int) -> ChartAccount:
        account = self.db.get(ChartAccount, account_id)
        if not account:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_account_by_code(
        self, scope_id: int, code: str
    ) -> ChartAccount | None:
        return self.db.execute(
            select(ChartAccount).where(
                ChartAccount.scope_id == scope_id,
                ChartAccount.code == code,
            )
        ).scalar_one_or_none()

    def require_posting_account(
        self, scope_id: int, code: str, hint: str = ""
    ) -> ChartAccount:
        """
        Resolve an account that must be able to receive entries.

        Raises AccountNotFoundError naming the missing code, or
        AccountNotPostableError for summary or retired accounts.
        """
        account = self.get_account_by_code(scope_id, code)
        if account is None:
            raise AccountNotFoundError(code, scope_id, hint)
        if not account.accepts_posting:
            raise AccountNotPostableError(
                code, "summary account does not accept posting"
            )
        if not account.is_active:
            raise AccountNotPostableError(code, "account is inactive")
        return account

    def ensure_account(
        self,
        scope_id: int,
        code: str,
        name: str,
        accepts_posting: bool = True,
        requires_third_party: bool = False,
    ) -> ChartAccount:
        """
        Return the account with `code`, creating it if missing.

        Missing ancestors are created as summary accounts named
        after their code.
        """
        existing = self.get_account_by_code(scope_id, code)
        if existing is not None:
            return existing

        _, _, _, parent_code = derive_account_attributes(code)
        if parent_code and self.get_account_by_code(scope_id, parent_code) is None:
            self.ensure_account(
                scope_id, parent_code, f"CUENTA {parent_code}",
                accepts_posting=False,
            )

        return self.create_account(scope_id, ChartAccountCreate(
            code=code,
            name=name,
            accepts_posting=accepts_posting,
            requires_third_party=requires_third_party,
        ))

    def seed_default_chart(self, scope_id: int) -> list[ChartAccount]:
        """
        Create the accounts the ledger core relies on.

        Idempotent: existing codes are left untouched. Returns
        only the accounts created by this call.
        """
        created = []
        for code, name, accepts_posting, requires_third_party in DEFAULT_CHART:
            if self.get_account_by_code(scope_id, code) is not None:
                continue
            created.append(self.create_account(scope_id, ChartAccountCreate(
                code=code,
                name=name,
                accepts_posting=accepts_posting,
                requires_third_party=requires_third_party,
            )))
        logger.info(
            "default_chart_seeded",
            extra={"scope_id": scope_id, "created_count": len(created)},
        )
        return created

    def deactivate_account(self, account_id: int) -> ChartAccount:
        """Retire an account. Accounts are never deleted."""
        account = self.get_account(account_id)
        account.is_active = False
        self.db.flush()
        return account

    def list_scopes(self) -> list[int]:
        """Scopes that have a chart of accounts."""
        scopes = self.db.execute(
            select(ChartAccount.scope_id).distinct().order_by(ChartAccount.scope_id)
        ).scalars().all()
        return list(scopes)

    def get_accounts(
        self,
        scope_id: int,
        account_type: AccountType | None = None,
        postable_only: bool = False,
    ) -> list[ChartAccount]:
        query = select(ChartAccount).where(ChartAccount.scope_id == scope_id)
        if account_type is not None:
            query = query.where(ChartAccount.account_type == account_type)
        if postable_only:
            query = query.where(
                ChartAccount.accepts_posting.is_(True),
                ChartAccount.is_active.is_(True),
            )
        return list(
            self.db.execute(query.order_by(ChartAccount.code)).scalars().all()
        )

    def build_tree(self, scope_id: int) -> list[dict]:
        """Nest the active accounts of a scope under their parents."""
        accounts = [
            a for a in self.get_accounts(scope_id) if a.is_active
        ]
        nodes = {a.id: {"account": a, "children": []} for a in accounts}
        roots = []
        for account in accounts:
            node = nodes[account.id]
            if account.parent_id in nodes:
                nodes[account.parent_id]["children"].append(node)
            else:
                roots.append(node)
        return roots
