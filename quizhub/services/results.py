import logging

from quizhub.errors import NotFoundError
from quizhub.models import Account, Assignment, Quiz, Result
from quizhub.services.quizzes import get_quiz, list_quizzes

logger = logging.getLogger(__name__)


def user_results(session, user_id):
    rows = (
        session.query(Result, Quiz)
        .outerjoin(Quiz, Quiz.id == Result.quiz_id)
        .filter(Result.user_id == user_id)
        .order_by(Result.completed_at.desc(), Result.id.desc())
        .all()
    )
    return [
        {
            **result.to_dict(),
            'quiz_title': quiz.title if quiz else None,
            'quiz_description': quiz.description if quiz else None
        }
        for result, quiz in rows
    ]


def user_overview(session, user_id):
    account = session.get(Account, user_id)
    if account is None:
        raise NotFoundError(f'Account {user_id} not found')

    assignments = session.query(Assignment).filter_by(user_id=user_id).order_by(Assignment.assigned_at).all()
    results = session.query(Result).filter_by(user_id=user_id).order_by(Result.completed_at).all()
    # Latest result per quiz wins when duplicates exist
    by_quiz = {result.quiz_id: result for result in results}

    rows = []
    for assignment in assignments:
        result = by_quiz.get(assignment.quiz_id)
        rows.append({
            'assignment_id': assignment.id,
            'quiz_id': assignment.quiz_id,
            'quiz_title': assignment.quiz.title if assignment.quiz else 'Unknown quiz',
            'assigned_at': assignment.assigned_at.isoformat() if assignment.assigned_at else None,
            'status': 'completed' if result else 'not_started',
            'score': result.score if result else None
        })

    assigned_ids = {assignment.quiz_id for assignment in assignments}
    return {
        'account': account.to_dict(),
        'assignments': rows,
        'available_quizzes': [quiz.to_dict() for quiz in list_quizzes(session) if quiz.id not in assigned_ids],
        'results': [
            {**result.to_dict(), 'quiz_title': result.quiz.title if result.quiz else 'Unknown quiz'}
            for result in reversed(results)
        ]
    }


def quiz_results(session, quiz_id):
    quiz = get_quiz(session, quiz_id)
    rows = (
        session.query(Result, Account.email)
        .outerjoin(Account, Account.id == Result.user_id)
        .filter(Result.quiz_id == quiz_id)
        .order_by(Result.completed_at.desc(), Result.id.desc())
        .all()
    )
    scores = [result.score for result, _ in rows]
    return {
        'quiz': quiz.to_dict(),
        'results': [{**result.to_dict(), 'email': email} for result, email in rows],
        'average_score': sum(scores) / len(scores) if scores else None
    }
