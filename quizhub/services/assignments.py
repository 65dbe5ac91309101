"""Admin assignment workflows.

Assignments are the only thing that unlocks a quiz for a learner. They are
created by an admin directly, or by reconciling a completed payment that has
no assignment yet, and removed individually or together with their quiz.
"""
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quizhub.errors import (
    CascadeDeleteError, NotFoundError, StoreError, format_error_message, is_unique_violation,
)
from quizhub.models import Account, Assignment, Payment, Question, Quiz, Result, utcnow
from quizhub.services.quizzes import get_quiz, list_learners

logger = logging.getLogger(__name__)

# Children of a quiz, removed before the quiz row itself
CASCADE_STEPS = (
    ('questions', Question),
    ('assignments', Assignment),
    ('results', Result),
    ('payments', Payment),
)


@dataclass(frozen=True)
class PendingAssignment:
    payment_id: int
    user_id: str
    quiz_id: int
    email: Optional[str]
    quiz_title: Optional[str]
    paid_at: Optional[datetime]

    @property
    def pair(self):
        return (self.user_id, self.quiz_id)

    def to_dict(self):
        return {
            'payment_id': self.payment_id,
            'user_id': self.user_id,
            'quiz_id': self.quiz_id,
            'email': self.email,
            'quiz_title': self.quiz_title,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None
        }


def insert_assignment(session, user_id, quiz_id):
    """Insert one assignment; return False when the pair already exists."""
    session.add(Assignment(user_id=user_id, quiz_id=quiz_id, assigned_at=utcnow()))
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if is_unique_violation(e):
            logger.info(f"Quiz {quiz_id} is already assigned to account {user_id}, skipping")
            return False
        logger.error(f"Error assigning quiz {quiz_id} to account {user_id}: {str(e)}")
        raise StoreError(format_error_message(e)) from e
    return True


def assigned_user_ids(session, quiz_id):
    return {user_id for (user_id,) in session.query(Assignment.user_id).filter_by(quiz_id=quiz_id)}


def assign(session, quiz_id, user_ids):
    get_quiz(session, quiz_id)
    user_ids = set(user_ids)
    known = {account_id for (account_id,) in session.query(Account.id).filter(Account.id.in_(user_ids))}
    unknown = sorted(str(user_id) for user_id in user_ids - known)
    if unknown:
        raise NotFoundError(f"Accounts not found: {', '.join(unknown)}")
    new_ids = sorted(user_ids - assigned_user_ids(session, quiz_id))
    inserted = sum(1 for user_id in new_ids if insert_assignment(session, user_id, quiz_id))
    logger.info(f"Assigned quiz {quiz_id} to {inserted} accounts")
    return inserted


def assign_quizzes(session, user_id, quiz_ids):
    if session.get(Account, user_id) is None:
        raise NotFoundError(f'Account {user_id} not found')
    already = {quiz_id for (quiz_id,) in session.query(Assignment.quiz_id).filter_by(user_id=user_id)}
    inserted = 0
    for quiz_id in sorted(set(quiz_ids) - already):
        get_quiz(session, quiz_id)
        if insert_assignment(session, user_id, quiz_id):
            inserted += 1
    return inserted


def unassign(session, assignment_id):
    assignment = session.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFoundError(f'Assignment {assignment_id} not found')
    removed = assignment.to_dict()
    session.delete(assignment)
    session.commit()
    logger.info(f"Assignment {assignment_id} removed")
    return removed


def assignable_learners(session, quiz_id):
    get_quiz(session, quiz_id)
    assigned = assigned_user_ids(session, quiz_id)
    return [(account, account.id in assigned) for account in list_learners(session)]


def reconcile_pending(session):
    """Completed payments whose (user, quiz) pair has no assignment, oldest first."""
    rows = (
        session.query(Payment, Account.email, Quiz.title)
        .outerjoin(Assignment, and_(Assignment.user_id == Payment.user_id,
                                    Assignment.quiz_id == Payment.quiz_id))
        .outerjoin(Account, Account.id == Payment.user_id)
        .outerjoin(Quiz, Quiz.id == Payment.quiz_id)
        .filter(Payment.status == 'completed', Assignment.id.is_(None))
        .order_by(Payment.paid_at, Payment.id)
        .all()
    )
    pending = []
    seen = set()
    for payment, email, title in rows:
        pair = (payment.user_id, payment.quiz_id)
        if pair in seen:
            continue
        seen.add(pair)
        pending.append(PendingAssignment(
            payment_id=payment.id,
            user_id=payment.user_id,
            quiz_id=payment.quiz_id,
            email=email,
            quiz_title=title,
            paid_at=payment.paid_at
        ))
    return pending


def assign_pending(session, pair, pending=()):
    """Assign one pending pair and return the pending list without it."""
    user_id, quiz_id = pair.pair if isinstance(pair, PendingAssignment) else pair
    inserted = assign(session, quiz_id, {user_id})
    remaining = [item for item in pending if item.pair != (user_id, quiz_id)]
    return inserted, remaining


def delete_quiz(session, quiz_id):
    """Remove a quiz and every row that references it.

    All steps run in one transaction. If a step fails the transaction is
    rolled back and the failing step is named in the raised CascadeDeleteError.
    """
    quiz = get_quiz(session, quiz_id)
    removed = {}
    for step, model in CASCADE_STEPS:
        try:
            removed[step] = session.query(model).filter(model.quiz_id == quiz_id).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error deleting {step} of quiz {quiz_id}: {str(e)}")
            raise CascadeDeleteError(quiz_id, step, format_error_message(e)) from e
    try:
        session.delete(quiz)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error deleting quiz {quiz_id}: {str(e)}")
        raise CascadeDeleteError(quiz_id, 'quiz', format_error_message(e)) from e
    logger.info(f"Quiz {quiz_id} deleted with {removed}")
    return removed
