import logging

from flask import Blueprint, current_app, jsonify, request, session as login_session
from flask_login import current_user

from quizhub.errors import IncompleteSubmissionError
from quizhub.extensions import db
from quizhub.identity import login_required_json
from quizhub.services import results, taking
from quizhub.services.quizzes import get_quiz, list_questions
from quizhub.services.taking import QuizAttempt, QuizState

user_bp = Blueprint('user', __name__)
logger = logging.getLogger(__name__)


def draft_key(quiz_id):
    return f'draft:{quiz_id}'


def load_attempt(quiz_id):
    draft = login_session.get(draft_key(quiz_id)) or {}
    return QuizAttempt(list_questions(db.session, quiz_id), draft.get('answers'), draft.get('index', 0))


def save_attempt(quiz_id, attempt):
    login_session[draft_key(quiz_id)] = {'index': attempt.index, 'answers': attempt.answers}


def completed_view(quiz, user_id):
    result = taking.find_result(db.session, user_id, quiz.id)
    return jsonify({
        'status': 'completed',
        'quiz': quiz.to_dict(),
        'message': 'You have already completed this quiz.',
        'result': result.to_dict()
    })


@user_bp.route('/dashboard')
@login_required_json
def dashboard():
    return jsonify(taking.learner_dashboard(db.session, current_user.account_id))


@user_bp.route('/payment/<int:quiz_id>', methods=['GET'])
@login_required_json
def payment_page(quiz_id):
    quiz = get_quiz(db.session, quiz_id)
    state = taking.quiz_state(db.session, current_user.account_id, quiz_id)
    return jsonify({
        'quiz': quiz.to_dict(),
        'price': current_app.config['QUIZ_PRICE'],
        'state': state.value
    })


@user_bp.route('/payment/<int:quiz_id>', methods=['POST'])
@login_required_json
def pay(quiz_id):
    payment = taking.simulate_payment(
        db.session, current_user.account_id, quiz_id, current_app.config['QUIZ_PRICE']
    )
    return jsonify({
        'status': 'success',
        'message': 'Payment successful! Your quiz will be available after admin approval.',
        'payment': payment.to_dict(),
        'state': QuizState.AWAITING_ASSIGNMENT.value
    }), 201


@user_bp.route('/quiz/<int:quiz_id>', methods=['GET'])
@login_required_json
def take_quiz(quiz_id):
    quiz = get_quiz(db.session, quiz_id)
    user_id = current_user.account_id
    state = taking.quiz_state(db.session, user_id, quiz_id)
    if state == QuizState.COMPLETED:
        return completed_view(quiz, user_id)
    if state != QuizState.ASSIGNED:
        return jsonify({
            'status': 'error',
            'message': 'This quiz has not been assigned to you.',
            'state': state.value
        }), 403

    attempt = load_attempt(quiz_id)
    if 'index' in request.args:
        attempt.jump(request.args['index'])
    save_attempt(quiz_id, attempt)
    return jsonify({'status': 'in_progress', 'quiz': quiz.to_dict(), 'attempt': attempt.to_dict()})


@user_bp.route('/quiz/<int:quiz_id>/answer', methods=['POST'])
@login_required_json
def answer(quiz_id):
    if taking.find_assignment(db.session, current_user.account_id, quiz_id) is None:
        return jsonify({'status': 'error', 'message': 'This quiz has not been assigned to you.'}), 403

    data = request.get_json(silent=True) or {}
    attempt = load_attempt(quiz_id)
    if 'question_id' in data:
        attempt.answer(data['question_id'], data.get('answer'))

    move = data.get('move')
    if move == 'next':
        attempt.next()
    elif move == 'previous':
        attempt.previous()
    elif move is not None:
        attempt.jump(move)

    save_attempt(quiz_id, attempt)
    return jsonify({'status': 'in_progress', 'attempt': attempt.to_dict()})


@user_bp.route('/quiz/<int:quiz_id>/submit', methods=['POST'])
@login_required_json
def submit(quiz_id):
    quiz = get_quiz(db.session, quiz_id)
    user_id = current_user.account_id
    # A second submission shows the recorded result instead of writing another one
    if taking.find_result(db.session, user_id, quiz_id) is not None:
        return completed_view(quiz, user_id)

    data = request.get_json(silent=True) or {}
    draft = login_session.get(draft_key(quiz_id)) or {}
    answers = {**(draft.get('answers') or {}), **taking.normalise_answers(data.get('answers'))}
    try:
        result = taking.submit(db.session, user_id, quiz_id, answers)
    except IncompleteSubmissionError as e:
        return jsonify({'status': 'error', 'message': e.message, 'unanswered': e.unanswered}), 400

    login_session.pop(draft_key(quiz_id), None)
    return jsonify({
        'status': 'success',
        'message': f'Quiz completed! Your score: {result.score:.2f}%',
        'score': result.score,
        'result': result.to_dict()
    }), 201


@user_bp.route('/results')
@login_required_json
def my_results():
    return jsonify({'results': results.user_results(db.session, current_user.account_id)})
