import logging

from sqlalchemy import func

from quizhub.errors import NotFoundError, ValidationError
from quizhub.models import Account, Assignment, Question, Quiz, QUESTION_TYPES

logger = logging.getLogger(__name__)


def get_quiz(session, quiz_id):
    quiz = session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFoundError(f'Quiz {quiz_id} not found')
    return quiz


def list_quizzes(session):
    return session.query(Quiz).order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()


def create_quiz(session, title, description=None):
    title = (title or '').strip()
    if not title:
        raise ValidationError('Quiz title is required')
    quiz = Quiz(title=title, description=(description or '').strip())
    session.add(quiz)
    session.commit()
    logger.info(f"Quiz {quiz.id} created: {quiz.title}")
    return quiz


def update_quiz(session, quiz_id, title=None, description=None):
    quiz = get_quiz(session, quiz_id)
    if title is not None:
        title = title.strip()
        if not title:
            raise ValidationError('Quiz title is required')
        quiz.title = title
    if description is not None:
        quiz.description = description.strip()
    session.commit()
    return quiz


def _clean_options(options):
    return [str(option).strip() for option in (options or []) if str(option).strip()]


def build_question(quiz_id, prompt, question_type, options=None, correct_answer=None, correct_index=None):
    """Validate authoring input and return an unsaved Question."""
    prompt = (prompt or '').strip()
    if not prompt:
        raise ValidationError('Question prompt is required')
    if question_type not in QUESTION_TYPES:
        raise ValidationError(f'Unknown question type: {question_type}')

    if question_type == 'multiple_choice':
        options = _clean_options(options)
        if len(options) < 2:
            raise ValidationError('Multiple choice questions need at least two options')
        if correct_index is not None:
            try:
                correct_answer = options[int(correct_index)]
            except (IndexError, ValueError, TypeError):
                raise ValidationError('Correct answer must point at one of the options')
        # Matched by value when the quiz is scored
        if correct_answer not in options:
            raise ValidationError('Correct answer must be one of the options')
    else:
        options = None
        correct_answer = (correct_answer or '').strip()
        if not correct_answer:
            raise ValidationError('Text questions need a correct answer')

    return Question(
        quiz_id=quiz_id,
        prompt=prompt,
        type=question_type,
        options=options,
        correct_answer=correct_answer
    )


def add_question(session, quiz_id, prompt, question_type, options=None, correct_answer=None, correct_index=None):
    get_quiz(session, quiz_id)
    question = build_question(quiz_id, prompt, question_type, options, correct_answer, correct_index)
    session.add(question)
    session.commit()
    logger.info(f"Question {question.id} added to quiz {quiz_id}")
    return question


def list_questions(session, quiz_id):
    return session.query(Question).filter_by(quiz_id=quiz_id).order_by(Question.id).all()


def delete_question(session, question_id):
    question = session.get(Question, question_id)
    if question is None:
        raise NotFoundError(f'Question {question_id} not found')
    session.delete(question)
    session.commit()


def assignment_counts(session):
    rows = session.query(Assignment.quiz_id, func.count(Assignment.id)).group_by(Assignment.quiz_id).all()
    return {quiz_id: count for quiz_id, count in rows}


def list_learners(session):
    return session.query(Account).filter_by(role='user').order_by(Account.email).all()
