from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import InsufficientCreditsError, NotFoundError
from ..models.file import File, FileStatus
from ..models.user import User
from ..utils.logger import get_logger

logger = get_logger(__name__)

IN_FLIGHT_STATUSES = (FileStatus.UPLOADED.value, FileStatus.PROCESSING.value)


class CreditLedger:
    """
    Per-user credit balance. A fixed `cost` is charged per completed file.

    `reserve` is an advisory check made before a file is accepted: files still
    uploaded or processing count against the balance, so concurrent uploads
    cannot together exceed it. `debit` is a single conditional UPDATE,
    floored at zero, and runs in the caller's success transaction.
    """

    def __init__(self, session_factory: sessionmaker, cost: int):
        self.session_factory = session_factory
        self.cost = cost

    def check_balance(self, user_id: int) -> int:
        with self.session_factory() as db:
            credits = db.execute(select(User.credits).where(User.id == user_id)).scalar_one_or_none()
        if credits is None:
            raise NotFoundError("User not found")
        return credits

    def reserve(self, db: Session, user_id: int) -> int:
        user = db.execute(select(User).where(User.id == user_id).with_for_update()).scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")

        in_flight = db.execute(
            select(func.count(File.id)).where(
                File.user_id == user_id,
                File.status.in_(IN_FLIGHT_STATUSES),
            )
        ).scalar_one()
        available = user.credits - in_flight * self.cost
        if available < self.cost:
            logger.info(
                f"User {user_id} has {user.credits} credits with {in_flight} file(s) in flight; "
                f"{self.cost} required"
            )
            raise InsufficientCreditsError(required=self.cost, available=max(available, 0))
        return user.credits

    def debit(self, db: Session, user_id: int) -> None:
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                credits=case(
                    (User.credits >= self.cost, User.credits - self.cost),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
