import logging

from flask import Blueprint, jsonify, request

from quizhub.errors import CascadeDeleteError
from quizhub.extensions import db
from quizhub.identity import admin_required
from quizhub.services import assignments, quizzes, results

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')
logger = logging.getLogger(__name__)


def payload():
    return request.get_json(silent=True) or {}


@admin_bp.route('/dashboard')
@admin_required
def dashboard():
    counts = quizzes.assignment_counts(db.session)
    return jsonify({
        'quizzes': [
            {**quiz.to_dict(), 'assigned_count': counts.get(quiz.id, 0)}
            for quiz in quizzes.list_quizzes(db.session)
        ],
        'learners': [account.to_dict() for account in quizzes.list_learners(db.session)],
        'pending': [item.to_dict() for item in assignments.reconcile_pending(db.session)]
    })


@admin_bp.route('/quizzes', methods=['POST'])
@admin_required
def create_quiz():
    data = payload()
    quiz = quizzes.create_quiz(db.session, data.get('title'), data.get('description'))
    return jsonify({'status': 'success', 'quiz': quiz.to_dict()}), 201


@admin_bp.route('/quizzes/<int:quiz_id>', methods=['GET'])
@admin_required
def quiz_detail(quiz_id):
    quiz = quizzes.get_quiz(db.session, quiz_id)
    return jsonify({
        'quiz': quiz.to_dict(),
        'questions': [q.to_dict() for q in quizzes.list_questions(db.session, quiz_id)]
    })


@admin_bp.route('/quizzes/<int:quiz_id>', methods=['PUT'])
@admin_required
def update_quiz(quiz_id):
    data = payload()
    quiz = quizzes.update_quiz(db.session, quiz_id, data.get('title'), data.get('description'))
    return jsonify({'status': 'success', 'quiz': quiz.to_dict()})


@admin_bp.route('/quizzes/<int:quiz_id>', methods=['DELETE'])
@admin_required
def delete_quiz(quiz_id):
    try:
        removed = assignments.delete_quiz(db.session, quiz_id)
    except CascadeDeleteError as e:
        return jsonify({'status': 'error', 'message': e.message, 'step': e.step}), 500
    return jsonify({'status': 'success', 'message': 'Quiz deleted', 'removed': removed})


@admin_bp.route('/quizzes/<int:quiz_id>/questions', methods=['GET'])
@admin_required
def list_questions(quiz_id):
    quizzes.get_quiz(db.session, quiz_id)
    return jsonify({'questions': [q.to_dict() for q in quizzes.list_questions(db.session, quiz_id)]})


@admin_bp.route('/quizzes/<int:quiz_id>/questions', methods=['POST'])
@admin_required
def add_question(quiz_id):
    data = payload()
    question = quizzes.add_question(
        db.session,
        quiz_id,
        data.get('prompt'),
        data.get('type'),
        options=data.get('options'),
        correct_answer=data.get('correct_answer'),
        correct_index=data.get('correct_index')
    )
    return jsonify({'status': 'success', 'question': question.to_dict()}), 201


@admin_bp.route('/questions/<int:question_id>', methods=['DELETE'])
@admin_required
def delete_question(question_id):
    quizzes.delete_question(db.session, question_id)
    return jsonify({'status': 'success', 'message': 'Question deleted'})


@admin_bp.route('/quizzes/<int:quiz_id>/assign', methods=['GET'])
@admin_required
def assign_page(quiz_id):
    quiz = quizzes.get_quiz(db.session, quiz_id)
    return jsonify({
        'quiz': quiz.to_dict(),
        'learners': [
            {**account.to_dict(), 'assigned': assigned}
            for account, assigned in assignments.assignable_learners(db.session, quiz_id)
        ]
    })


@admin_bp.route('/quizzes/<int:quiz_id>/assign', methods=['POST'])
@admin_required
def assign(quiz_id):
    user_ids = payload().get('user_ids') or []
    if not user_ids:
        return jsonify({'status': 'error', 'message': 'Select at least one user'}), 400
    inserted = assignments.assign(db.session, quiz_id, user_ids)
    return jsonify({
        'status': 'success',
        'message': f'Quiz assigned to {inserted} users',
        'assigned': inserted
    })


@admin_bp.route('/pending')
@admin_required
def pending():
    return jsonify({'pending': [item.to_dict() for item in assignments.reconcile_pending(db.session)]})


@admin_bp.route('/pending/assign', methods=['POST'])
@admin_required
def assign_pending():
    data = payload()
    user_id, quiz_id = data.get('user_id'), data.get('quiz_id')
    if not user_id or quiz_id is None:
        return jsonify({'status': 'error', 'message': 'user_id and quiz_id are required'}), 400
    inserted, remaining = assignments.assign_pending(
        db.session, (user_id, int(quiz_id)), assignments.reconcile_pending(db.session)
    )
    return jsonify({
        'status': 'success',
        'assigned': inserted,
        'pending': [item.to_dict() for item in remaining]
    })


@admin_bp.route('/users/<user_id>')
@admin_required
def user_overview(user_id):
    return jsonify(results.user_overview(db.session, user_id))


@admin_bp.route('/users/<user_id>/assign', methods=['POST'])
@admin_required
def assign_to_user(user_id):
    quiz_ids = payload().get('quiz_ids') or []
    if not quiz_ids:
        return jsonify({'status': 'error', 'message': 'Select at least one quiz'}), 400
    inserted = assignments.assign_quizzes(db.session, user_id, [int(quiz_id) for quiz_id in quiz_ids])
    return jsonify({
        'status': 'success',
        'message': f'{inserted} quizzes assigned',
        'assigned': inserted
    })


@admin_bp.route('/assignments/<int:assignment_id>', methods=['DELETE'])
@admin_required
def remove_assignment(assignment_id):
    removed = assignments.unassign(db.session, assignment_id)
    return jsonify({'status': 'success', 'message': 'Assignment removed', 'assignment': removed})


@admin_bp.route('/quizzes/<int:quiz_id>/results')
@admin_required
def quiz_results(quiz_id):
    return jsonify(results.quiz_results(db.session, quiz_id))
