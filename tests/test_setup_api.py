from quizhub.extensions import db
from quizhub.models import Account, Assignment, Quiz
from quizhub.services.setup import SAMPLE_PASSWORD

from conftest import sign_in, sign_up


def test_diagnostics_reports_healthy_store(client):
    response = client.get('/api/setup/diagnostics')
    assert response.status_code == 200
    report = response.get_json()
    assert report['connectivity']['ok'] is True
    assert report['missing_tables'] == []
    assert report['secret_key_length'] == len('test-secret-key')
    assert 'accounts' in report['required_tables']


def test_init_db_creates_tables_and_sample_data(client, session):
    session.commit()
    db.drop_all()
    assert 'quizzes' in client.get('/api/setup/diagnostics').get_json()['missing_tables']

    response = client.post('/api/setup/init-db', json={'sample': True})

    assert response.status_code == 200
    assert response.get_json()['tables_exist'] is True
    assert {quiz.title for quiz in session.query(Quiz)} == {'JavaScript Basics', 'React Components'}
    assert session.query(Assignment).count() == 1

    repeat = client.post('/api/setup/init-db', json={'sample': True}).get_json()
    assert 'Sample quizzes already exist, skipping.' in repeat['messages']
    assert session.query(Quiz).count() == 2


def test_sample_accounts_can_sign_in(app, session):
    app.test_client().post('/api/setup/init-db', json={'sample': True})

    learner = app.test_client()
    response = sign_in(learner, 'user@example.com', SAMPLE_PASSWORD)
    assert response.status_code == 200
    assert response.get_json()['user']['role'] == 'user'
    assigned = learner.get('/dashboard').get_json()['assigned']
    assert [quiz['title'] for quiz in assigned] == ['JavaScript Basics']

    admin = app.test_client()
    response = sign_in(admin, 'admin@example.com', SAMPLE_PASSWORD)
    assert response.get_json()['user']['role'] == 'admin'
    assert session.query(Account).count() == 2


def test_init_db_creates_configured_admin(app, client, session):
    app.config['ADMIN_EMAIL'] = 'root@example.com'
    app.config['ADMIN_PASSWORD'] = 'root-pass'

    assert client.post('/api/setup/init-db', json={}).status_code == 200

    response = sign_in(client, 'root@example.com', 'root-pass')
    assert response.get_json()['user']['role'] == 'admin'


def test_setup_token_guard(app, client):
    app.config['SETUP_TOKEN'] = 's3cret'

    assert client.get('/api/setup/diagnostics').status_code == 403
    assert client.get('/api/setup/diagnostics', headers={'X-Setup-Token': 'wrong'}).status_code == 403
    assert client.get('/api/setup/diagnostics', headers={'X-Setup-Token': 's3cret'}).status_code == 200


def test_promote_takes_effect_on_next_sign_in(client, session):
    sign_up(client, 'climber@example.com')

    response = client.post('/api/setup/promote', json={'email': 'climber@example.com'})
    assert response.status_code == 200
    assert response.get_json()['account']['role'] == 'admin'
    assert session.query(Account).filter_by(email='climber@example.com').one().role == 'admin'

    assert client.get('/admin/dashboard').status_code == 403
    client.post('/auth/logout')
    sign_in(client, 'climber@example.com')
    assert client.get('/admin/dashboard').status_code == 200


def test_promote_unknown_account(client):
    assert client.post('/api/setup/promote', json={'email': 'ghost@example.com'}).status_code == 404
    assert client.post('/api/setup/promote', json={}).status_code == 400


def test_init_db_command(app, session):
    result = app.test_cli_runner().invoke(args=['init-db', '--sample'])

    assert result.exit_code == 0
    assert 'Tables already exist.' in result.output
    assert '2 sample quizzes created and assigned to user@example.com.' in result.output
