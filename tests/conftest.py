import os
import tempfile
from datetime import date
from decimal import Decimal

# Set environment variables BEFORE any imports that might use settings
# Use a temporary directory for test database to avoid permission issues
_test_db_dir = tempfile.mkdtemp()
_test_db_path = os.path.join(_test_db_dir, "test_housing.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db_path}"
os.environ["SECRET_KEY"] = "test-secret-key-min-32-characters-long-for-testing"
os.environ["ALGORITHM"] = "HS256"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["FIRST_ADMIN_EMAIL"] = "admin@test.example.com"
os.environ["FIRST_ADMIN_PASSWORD"] = "AdminTest123!"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["FRONTEND_URL"] = "http://localhost:5173"

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from app.main import app
from app.core.security import create_access_token, get_password_hash
from app.db.models.user import User as UserModel
from app.db.models.role import Role as RoleModel
from app.errors import PaymentReferenceNotFoundError, ProviderUnavailableError
from app.services.payment_provider import AccountState, PaymentProvider

VALID_SIGNATURE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR4nGNgYGD4DwABBAEAwS2OUAAAAABJRU5ErkJggg=="


class FakePaymentProvider(PaymentProvider):
    """In-memory processor. Flip ``unavailable`` to simulate an outage."""

    def __init__(self):
        self.unavailable = False
        self.missing_refs: set[str] = set()
        self.subscriptions: list[str] = []
        self.cancelled: list[str] = []
        self.deposit_intents: list[str] = []
        self.accounts: list[str] = []
        self.account_states: dict[str, AccountState] = {}
        self.onboarding_links: list[tuple[str, str, str]] = []
        self._counter = 0

    def _next_ref(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_test_{self._counter}"

    def _check_available(self) -> None:
        if self.unavailable:
            raise ProviderUnavailableError("Payment provider timed out")

    def create_subscription(self, contract, account) -> str:
        self._check_available()
        ref = self._next_ref("sub")
        self.subscriptions.append(ref)
        return ref

    def cancel_subscription(self, subscription_ref: str) -> None:
        self._check_available()
        if subscription_ref in self.missing_refs:
            raise PaymentReferenceNotFoundError(f"No such subscription: '{subscription_ref}'")
        self.cancelled.append(subscription_ref)

    def create_deposit_intent(self, contract, account) -> str:
        self._check_available()
        ref = self._next_ref("pi")
        self.deposit_intents.append(ref)
        return ref

    def create_connected_account(self, user) -> str:
        self._check_available()
        ref = self._next_ref("acct")
        self.accounts.append(ref)
        return ref

    def create_onboarding_link(self, stripe_account_id: str, refresh_url: str, return_url: str) -> str:
        self._check_available()
        self.onboarding_links.append((stripe_account_id, refresh_url, return_url))
        return f"https://connect.test/setup/{stripe_account_id}"

    def retrieve_account(self, stripe_account_id: str) -> AccountState:
        self._check_available()
        return self.account_states.get(
            stripe_account_id,
            AccountState(onboarding_complete=False, payouts_enabled=False, charges_enabled=False),
        )


@pytest.fixture(scope="function")
def session_factory():
    """Create a fresh database for each test, run migrations, and return its session factory."""
    # Use a temporary file for SQLite database
    temp_db_dir = tempfile.mkdtemp()
    test_db_path = os.path.join(temp_db_dir, "test.db")
    test_db_url = f"sqlite:///{test_db_path}"

    # Create test engine and session with proper SQLite settings
    test_engine = create_engine(
        test_db_url,
        connect_args={"check_same_thread": False},
        poolclass=None,  # Don't use connection pooling for SQLite
    )

    # Enable WAL mode to reduce locking issues
    @event.listens_for(test_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine
    )

    # Run Alembic migrations to set up the database schema and seed data
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", test_db_url)
    command.upgrade(alembic_cfg, "head")

    yield TestingSessionLocal

    # Dispose the engine to close all connections
    test_engine.dispose()

    # Clean up - remove test database file and directory
    try:
        for suffix in ["", "-wal", "-shm"]:
            path = f"{test_db_path}{suffix}"
            if os.path.exists(path):
                os.remove(path)
        if os.path.exists(temp_db_dir):
            os.rmdir(temp_db_dir)
    except OSError as e:
        print(f"Cleanup failed: {e}")


@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db(db_session):
    """Alias for db_session to match test naming conventions."""
    return db_session


@pytest.fixture(scope="function")
def payment_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture(scope="function")
def client(db_session, payment_provider):
    """Create a test client with database and payment provider overrides."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    from app.api.deps import get_db, get_payment_provider

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: payment_provider

    yield TestClient(app)

    app.dependency_overrides.clear()


def _create_user(
    db: Session,
    email: str,
    role_name: str,
    password: str = "UserPass123!",
    kyc_verified: bool = False,
) -> UserModel:
    role = db.query(RoleModel).filter(RoleModel.name == role_name).first()
    if not role:
        raise RuntimeError(f"{role_name} role not found")

    user = UserModel(
        email=email,
        first_name=role_name.capitalize(),
        last_name="Test",
        password_hash=get_password_hash(password),
        role_id=role.id,
        kyc_verified=kyc_verified,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def token_for(user: UserModel) -> str:
    return create_access_token(data={"sub": str(user.id)})


@pytest.fixture(scope="function")
def admin_user(db: Session) -> UserModel:
    """The admin user seeded by migration 002."""
    from app.repositories.user import get_user_by_email
    from app.core.config import settings

    user = get_user_by_email(db, settings.first_admin_email)
    if not user:
        raise RuntimeError("Admin user not found. Check migration 002.")
    return user


@pytest.fixture(scope="function")
def admin_token(admin_user: UserModel) -> str:
    return token_for(admin_user)


@pytest.fixture(scope="function")
def owner_user(db: Session) -> UserModel:
    """A KYC-verified property owner."""
    return _create_user(db, "owner@example.com", "owner", kyc_verified=True)


@pytest.fixture(scope="function")
def owner_token(owner_user: UserModel) -> str:
    return token_for(owner_user)


@pytest.fixture(scope="function")
def student_user(db: Session) -> UserModel:
    return _create_user(db, "student@example.com", "student")


@pytest.fixture(scope="function")
def student_token(student_user: UserModel) -> str:
    return token_for(student_user)


@pytest.fixture(scope="function")
def other_student(db: Session) -> UserModel:
    return _create_user(db, "other.student@example.com", "student")


@pytest.fixture(scope="function")
def other_student_token(other_student: UserModel) -> str:
    return token_for(other_student)


@pytest.fixture(scope="function")
def rental_property(db: Session, owner_user: UserModel):
    from app.repositories.property import create_property

    return create_property(
        db,
        owner_id=owner_user.id,
        title="Studio near campus",
        monthly_rent=Decimal("1500.00"),
        charges=Decimal("100.00"),
        city_name="Lausanne",
        address="Avenue de la Gare 1",
    )


@pytest.fixture(scope="function")
def ready_owner_account(db: Session, owner_user: UserModel):
    """Owner payout account that finished processor onboarding."""
    import app.repositories.payment_account as account_repo

    account = account_repo.create_account(db, owner_user.id, "acct_ready_owner")
    return account_repo.update_account_status(
        db, account, onboarding_complete=True, payouts_enabled=True, charges_enabled=True
    )


@pytest.fixture(scope="function")
def pending_contract(db: Session, owner_user, student_user, rental_property):
    from app.services.contract import create_contract

    return create_contract(
        db,
        owner_user,
        property_id=rental_property.id,
        student_id=student_user.id,
        monthly_rent=Decimal("1500.00"),
        start_date=date(2026, 9, 1),
        end_date=date(2027, 8, 31),
        conversation_id=42,
    )


@pytest.fixture(scope="function")
def active_contract(db: Session, pending_contract, owner_user, student_user):
    from app.domain.contract_lifecycle import SignatoryRole
    from app.services.contract import sign_contract

    sign_contract(db, pending_contract.id, student_user, SignatoryRole.STUDENT, VALID_SIGNATURE)
    result = sign_contract(db, pending_contract.id, owner_user, SignatoryRole.OWNER, VALID_SIGNATURE)
    assert result.activated
    return result.contract


@pytest.fixture(scope="function")
def signature() -> str:
    """A well-formed signature image data URI."""
    return VALID_SIGNATURE
