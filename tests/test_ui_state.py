from edu_portal.ui_state import SESSION_KEY, SidebarState, load_sidebar, save_sidebar


def test_sidebar_defaults_open():
    assert load_sidebar({}).is_open is True


def test_sidebar_round_trips_through_session():
    session = {}
    save_sidebar(session, SidebarState().toggle())
    assert session[SESSION_KEY] == {"is_open": False}
    assert load_sidebar(session).toggle().is_open is True


def test_close_is_idempotent():
    state = SidebarState(is_open=False)
    assert state.close().as_dict() == {"isOpen": False}


class TestSidebarApi:
    def test_toggle_persists_per_session(self, client):
        assert client.get("/api/ui/sidebar").json() == {"isOpen": True}
        assert client.post("/api/ui/sidebar/toggle").json() == {"isOpen": False}
        assert client.get("/api/ui/sidebar").json() == {"isOpen": False}
        assert client.post("/api/ui/sidebar/toggle").json() == {"isOpen": True}

    def test_close(self, client):
        assert client.post("/api/ui/sidebar/close").json() == {"isOpen": False}
        assert client.post("/api/ui/sidebar/close").json() == {"isOpen": False}

    def test_dashboard_reflects_closed_sidebar(self, client, make_user, login):
        make_user("sam", role="student")
        login("sam")
        client.post("/api/ui/sidebar/close")
        page = client.get("/dashboard/student")
        assert 'class="sidebar closed"' in page.text

    def test_login_resets_ui_state(self, client, make_user, login):
        make_user("sam", role="student")
        client.post("/api/ui/sidebar/close")
        login("sam")
        assert client.get("/api/ui/sidebar").json() == {"isOpen": True}
