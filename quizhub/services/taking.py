"""Learner side of the quiz lifecycle.

A (learner, quiz) pair moves through four states::

    LOCKED -> AWAITING_ASSIGNMENT -> ASSIGNED -> COMPLETED

Paying moves a locked quiz forward, only an admin can assign it, and
submitting a complete set of answers records the single result.
"""
from collections.abc import Mapping
from enum import Enum
import logging

from quizhub.errors import AccessDeniedError, ConflictError, IncompleteSubmissionError, ValidationError
from quizhub.models import Assignment, Payment, Result, utcnow
from quizhub.services.quizzes import get_quiz, list_questions, list_quizzes

logger = logging.getLogger(__name__)


class QuizState(str, Enum):
    LOCKED = 'locked'
    AWAITING_ASSIGNMENT = 'awaiting_assignment'
    ASSIGNED = 'assigned'
    COMPLETED = 'completed'


def find_assignment(session, user_id, quiz_id):
    return session.query(Assignment).filter_by(user_id=user_id, quiz_id=quiz_id).first()


def find_result(session, user_id, quiz_id):
    return (
        session.query(Result)
        .filter_by(user_id=user_id, quiz_id=quiz_id)
        .order_by(Result.completed_at.desc(), Result.id.desc())
        .first()
    )


def has_completed_payment(session, user_id, quiz_id):
    return session.query(Payment.id).filter_by(
        user_id=user_id, quiz_id=quiz_id, status='completed'
    ).first() is not None


def quiz_state(session, user_id, quiz_id):
    if find_result(session, user_id, quiz_id) is not None:
        return QuizState.COMPLETED
    if find_assignment(session, user_id, quiz_id) is not None:
        return QuizState.ASSIGNED
    if has_completed_payment(session, user_id, quiz_id):
        return QuizState.AWAITING_ASSIGNMENT
    return QuizState.LOCKED


def learner_dashboard(session, user_id):
    """Split the catalogue into the learner's assigned and not yet assigned quizzes."""
    assigned = {a.quiz_id: a for a in session.query(Assignment).filter_by(user_id=user_id)}
    scores = {}
    for result in session.query(Result).filter_by(user_id=user_id).order_by(Result.completed_at):
        scores[result.quiz_id] = result.score
    paid = {quiz_id for (quiz_id,) in session.query(Payment.quiz_id).filter_by(user_id=user_id, status='completed')}

    dashboard = {'assigned': [], 'unassigned': []}
    for quiz in list_quizzes(session):
        row = quiz.to_dict()
        if quiz.id in assigned:
            row['assigned_at'] = assigned[quiz.id].assigned_at.isoformat()
            row['completed'] = quiz.id in scores
            row['score'] = scores.get(quiz.id)
            dashboard['assigned'].append(row)
        else:
            row['paid'] = quiz.id in paid
            dashboard['unassigned'].append(row)
    return dashboard


def simulate_payment(session, user_id, quiz_id, amount):
    """Record a completed payment without any gateway round trip."""
    get_quiz(session, quiz_id)
    state = quiz_state(session, user_id, quiz_id)
    if state == QuizState.AWAITING_ASSIGNMENT:
        raise ConflictError('Payment already received. Please wait for an admin to assign this quiz to you.')
    if state != QuizState.LOCKED:
        raise ConflictError('This quiz is already assigned to you.')

    payment = Payment(user_id=user_id, quiz_id=quiz_id, amount=amount, status='completed', paid_at=utcnow())
    session.add(payment)
    session.commit()
    logger.info(f"Payment {payment.id} recorded for account {user_id} and quiz {quiz_id}")
    return payment


def normalise_answers(answers):
    if answers is None:
        return {}
    if not isinstance(answers, Mapping):
        raise ValidationError('Answers must map question ids to answers')
    return {str(question_id): value for question_id, value in answers.items()}


def is_answered(value):
    return value is not None and value != ''


def find_unanswered(questions, answers):
    answers = normalise_answers(answers)
    return [question.id for question in questions if not is_answered(answers.get(str(question.id)))]


def score_answers(questions, answers):
    """Percentage of questions whose answer equals the stored correct answer exactly."""
    if not questions:
        return 0.0
    answers = normalise_answers(answers)
    correct = sum(1 for question in questions if answers.get(str(question.id)) == question.correct_answer)
    return correct / len(questions) * 100


def submit(session, user_id, quiz_id, answers):
    get_quiz(session, quiz_id)
    if find_assignment(session, user_id, quiz_id) is None:
        raise AccessDeniedError('This quiz has not been assigned to you.')

    questions = list_questions(session, quiz_id)
    if not questions:
        raise ValidationError('No questions found for this quiz. Please contact an administrator.')

    answers = normalise_answers(answers)
    unanswered = find_unanswered(questions, answers)
    if unanswered:
        raise IncompleteSubmissionError(unanswered)

    result = Result(
        user_id=user_id,
        quiz_id=quiz_id,
        answers={str(q.id): answers[str(q.id)] for q in questions},
        score=score_answers(questions, answers),
        completed_at=utcnow()
    )
    session.add(result)
    session.commit()
    logger.info(f"Account {user_id} completed quiz {quiz_id} with score {result.score:.2f}")
    return result


class QuizAttempt:
    """Cursor over a quiz's questions together with the answers given so far."""

    def __init__(self, questions, answers=None, index=0):
        self.questions = list(questions)
        self.answers = normalise_answers(answers)
        self.index = 0
        self.jump(index)

    @property
    def total(self):
        return len(self.questions)

    @property
    def current(self):
        if not self.questions:
            return None
        return self.questions[self.index]

    @property
    def is_first(self):
        return self.index == 0

    @property
    def is_last(self):
        return self.index >= self.total - 1

    @property
    def answered_count(self):
        return sum(1 for q in self.questions if is_answered(self.answers.get(str(q.id))))

    @property
    def unanswered(self):
        return find_unanswered(self.questions, self.answers)

    def next(self):
        if self.index < self.total - 1:
            self.index += 1
        return self.current

    def previous(self):
        if self.index > 0:
            self.index -= 1
        return self.current

    def jump(self, index):
        try:
            index = int(index)
        except (TypeError, ValueError):
            index = 0
        self.index = max(0, min(index, self.total - 1)) if self.questions else 0
        return self.current

    def answer(self, question_id, value):
        if str(question_id) not in {str(q.id) for q in self.questions}:
            raise ValidationError(f'Question {question_id} is not part of this quiz')
        self.answers[str(question_id)] = value

    def to_dict(self):
        current = self.current
        return {
            'index': self.index,
            'total': self.total,
            'answered': self.answered_count,
            'is_first': self.is_first,
            'is_last': self.is_last,
            'question': current.to_dict(include_answer=False) if current else None,
            'answer': self.answers.get(str(current.id)) if current else None,
            'navigator': [
                {'index': i, 'question_id': q.id, 'answered': is_answered(self.answers.get(str(q.id)))}
                for i, q in enumerate(self.questions)
            ]
        }
