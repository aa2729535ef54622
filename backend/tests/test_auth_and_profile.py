from conftest import login, register


def test_register_login_and_me(make_client):
    client = make_client()
    r = register(client, 'ann@gmail.com', gpa=3.9, sat_score=1500, target_countries=['Canada'])
    assert r.status_code == 200
    assert r.json()['user']['role'] == 'STUDENT'

    r2 = client.post('/auth/login', json={'email': 'ann@gmail.com', 'password': 'pw123456'})
    assert r2.status_code == 200
    assert 'token' in r2.cookies
    set_cookie = r2.headers['set-cookie'].lower()
    assert 'httponly' in set_cookie
    assert 'max-age=604800' in set_cookie

    me = client.get('/auth/me')
    assert me.status_code == 200
    body = me.json()
    assert body['email'] == 'ann@gmail.com'
    assert body['gpa'] == 3.9
    assert body['target_countries'] == ['Canada']
    assert body['parents'] == [] and body['students'] == []


def test_me_requires_session(make_client):
    client = make_client()
    assert client.get('/auth/me').status_code == 401
    bad = client.get('/auth/me', headers={'Authorization': 'Bearer invalid.token.here'})
    assert bad.status_code == 401


def test_bearer_header_accepted(make_client):
    client = make_client()
    register(client, 'bearer@gmail.com')
    r = client.post('/auth/login', json={'email': 'bearer@gmail.com', 'password': 'pw123456'})
    token = r.cookies['token']
    fresh = make_client()
    me = fresh.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200


def test_duplicate_email_conflicts(make_client):
    client = make_client()
    assert register(client, 'dup@gmail.com').status_code == 200
    assert register(client, 'DUP@gmail.com').status_code == 409


def test_wrong_password_rejected(make_client):
    client = make_client()
    register(client, 'eve@gmail.com')
    r = client.post('/auth/login', json={'email': 'eve@gmail.com', 'password': 'nope'})
    assert r.status_code == 401
    assert 'token' not in r.cookies


def test_unknown_fields_are_not_mass_assigned(make_client):
    client = make_client()
    r = register(client, 'sneaky@gmail.com', password_hash='x', id=999, is_admin=True)
    assert r.status_code == 200
    assert r.json()['user']['id'] != 999
    login(client, 'sneaky@gmail.com')


def test_admin_cannot_self_register(make_client):
    r = register(make_client(), 'root@gmail.com', role='ADMIN')
    assert r.status_code == 400


def test_parent_links_to_student_on_register(parent, student):
    me = parent.get('/auth/me').json()
    assert [s['email'] for s in me['students']] == ['alice@gmail.com']
    student_me = student.get('/auth/me').json()
    assert [p['email'] for p in student_me['parents']] == ['carol@gmail.com']


def test_parent_with_unknown_student_is_not_created(make_client, student):
    client = make_client()
    r = register(client, 'lost@gmail.com', role='PARENT', student_email='ghost@gmail.com')
    assert r.status_code == 400
    r2 = client.post('/auth/login', json={'email': 'lost@gmail.com', 'password': 'pw123456'})
    assert r2.status_code == 401
    # a parent email is not a student either
    r3 = register(client, 'lost2@gmail.com', role='PARENT', student_email='alice@gmail.com')
    assert r3.status_code == 200
    r4 = register(client, 'lost3@gmail.com', role='PARENT', student_email='lost2@gmail.com')
    assert r4.status_code == 400


def test_logout_clears_cookie(student):
    r = student.post('/auth/logout')
    assert r.status_code == 200
    assert student.get('/auth/me').status_code == 401


def test_profile_update_and_ranges(student, parent):
    r = student.put('/student/profile', json={'gpa': 3.5, 'sat_score': 1400, 'graduation_year': 2026,
                                              'intended_majors': ['Physics']})
    assert r.status_code == 200
    assert r.json()['intended_majors'] == ['Physics']
    assert student.get('/student/profile').json()['sat_score'] == 1400

    for bad in ({'gpa': 4.5}, {'sat_score': 300}, {'act_score': 40}, {'graduation_year': 2040}):
        assert student.put('/student/profile', json=bad).status_code == 400

    assert parent.get('/student/profile').status_code == 403
    assert parent.put('/student/profile', json={'gpa': 3.0}).status_code == 403


def test_login_rate_limited(app, make_client, monkeypatch):
    monkeypatch.setattr(app.state.settings, 'LOGIN_RATE_LIMIT_PER_MIN', 2)
    client = make_client()
    register(client, 'slow@gmail.com')
    for _ in range(2):
        assert client.post('/auth/login', json={'email': 'slow@gmail.com', 'password': 'bad'}).status_code == 401
    blocked = client.post('/auth/login', json={'email': 'slow@gmail.com', 'password': 'pw123456'})
    assert blocked.status_code == 429
    assert 'Retry-After' in blocked.headers


def test_request_id_header_exists(make_client):
    r = make_client().get('/health')
    assert r.status_code == 200
    assert 'X-Request-ID' in r.headers
