from datetime import datetime, timezone
import uuid

from quizhub.extensions import db

ROLES = ('admin', 'user')
QUESTION_TYPES = ('multiple_choice', 'text')
PAYMENT_STATUSES = ('pending', 'completed', 'failed')

# Tables the application expects the store to expose
REQUIRED_TABLES = ('accounts', 'quizzes', 'questions', 'assignments', 'results', 'payments')


def utcnow():
    return datetime.now(timezone.utc)


def new_identity_id():
    return str(uuid.uuid4())


class Identity(db.Model):
    """Credential record owned by the identity provider."""
    __tablename__ = 'identities'

    id = db.Column(db.String(36), primary_key=True, default=new_identity_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class Account(db.Model):
    __tablename__ = 'accounts'

    id = db.Column(db.String(36), primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(db.String(20), nullable=False, default='user')

    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'user')", name='ck_accounts_role'),
    )

    def to_dict(self):
        return {'id': self.id, 'email': self.email, 'role': self.role}


class Quiz(db.Model):
    __tablename__ = 'quizzes'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class Question(db.Model):
    __tablename__ = 'questions'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    prompt = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False)
    options = db.Column(db.JSON)
    correct_answer = db.Column(db.Text, nullable=False)

    __table_args__ = (
        db.CheckConstraint("type IN ('multiple_choice', 'text')", name='ck_questions_type'),
    )

    def to_dict(self, include_answer=True):
        data = {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'prompt': self.prompt,
            'type': self.type,
            'options': self.options
        }
        if include_answer:
            data['correct_answer'] = self.correct_answer
        return data


class Assignment(db.Model):
    __tablename__ = 'assignments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('accounts.id'), nullable=False, index=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    quiz = db.relationship('Quiz', lazy='joined')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'quiz_id', name='uq_assignments_user_quiz'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'quiz_id': self.quiz_id,
            'assigned_at': self.assigned_at.isoformat() if self.assigned_at else None
        }


class Result(db.Model):
    __tablename__ = 'results'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('accounts.id'), nullable=False, index=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    answers = db.Column(db.JSON, nullable=False)
    score = db.Column(db.Float, nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    quiz = db.relationship('Quiz', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'quiz_id': self.quiz_id,
            'answers': self.answers,
            'score': self.score,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None
        }


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('accounts.id'), nullable=False, index=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    paid_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'completed', 'failed')", name='ck_payments_status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'quiz_id': self.quiz_id,
            'amount': float(self.amount),
            'status': self.status,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None
        }
