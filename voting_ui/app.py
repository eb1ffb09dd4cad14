"""
Flask application for the voting UI.

Project: Single-Election Voting System
Description: Voter ballot, public results and admin dashboard on top of the election API
"""
import logging
from functools import wraps

from flask import Flask, render_template, request, jsonify, redirect, url_for, flash, session

from voting_ui import config
from voting_ui.api_client import ApiError, ElectionApiClient
from voting_ui.session import VoterSession

logger = logging.getLogger(__name__)

ALREADY_VOTED = 'You have already voted!'


def create_app(api_client=None):
    """Build the UI app; api_client defaults to one pointed at ELECTION_API_URL."""
    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.SECRET_KEY
    app.config['DEBUG'] = config.DEBUG

    api = api_client or ElectionApiClient()
    app.extensions['election_api'] = api

    def with_session(view):
        """Pass the browser's VoterSession to the view and persist changes."""
        @wraps(view)
        def wrapper(*args, **kwargs):
            voting_session = VoterSession.load(session)
            try:
                return view(voting_session, *args, **kwargs)
            finally:
                voting_session.save(session)
        return wrapper

    def admin_required(view):
        @wraps(view)
        def wrapper(voting_session, *args, **kwargs):
            if not voting_session.is_admin:
                flash('Access denied.', 'error')
                return redirect(url_for('admin_login'))
            return view(voting_session, *args, **kwargs)
        return wrapper

    def admin_call(voting_session, action, success_message):
        """Run an admin API call; show the API's message verbatim on failure."""
        try:
            result = action()
            flash(success_message, 'success')
            return result
        except ApiError as e:
            if e.status_code == 401:
                voting_session.sign_out_admin()
            flash(e.message, 'error')
            return None

    # ───────────────────────────────────────────────────────────────
    # Voter pages
    # ───────────────────────────────────────────────────────────────

    @app.route('/')
    @with_session
    def index(voting_session):
        """Voter sign-in form."""
        return render_template('index.html', voting_session=voting_session)

    @app.route('/login', methods=['POST'])
    @with_session
    def voter_login(voting_session):
        voter_name = request.form.get('voter_name', '').strip()
        if not voter_name:
            flash('Please enter your name to continue.', 'error')
            return redirect(url_for('index'))

        try:
            if api.has_voted(voter_name):
                flash(ALREADY_VOTED, 'error')
                return redirect(url_for('index'))
        except ApiError as e:
            flash(e.message, 'error')
            return redirect(url_for('index'))

        voting_session.sign_in_voter(voter_name)
        return redirect(url_for('vote'))

    @app.route('/logout', methods=['GET', 'POST'])
    @with_session
    def voter_logout(voting_session):
        voting_session.sign_out_voter()
        return redirect(url_for('index'))

    @app.route('/vote', methods=['GET'])
    @with_session
    def vote(voting_session):
        """Ballot: one button per candidate, keyed by candidate id."""
        if not voting_session.voter_name:
            flash('Please login first.', 'error')
            return redirect(url_for('index'))

        try:
            candidates = api.list_candidates()
        except ApiError as e:
            flash(e.message, 'error')
            candidates = []

        return render_template('vote.html', voting_session=voting_session, candidates=candidates)

    @app.route('/vote', methods=['POST'])
    @with_session
    def submit_vote(voting_session):
        """Cast the signed-in voter's ballot."""
        voter_name = voting_session.voter_name
        if not voter_name:
            flash('Please login first.', 'error')
            return redirect(url_for('index'))

        candidate_id = request.form.get('candidate_id', type=int)
        if candidate_id is None:
            flash('Invalid candidate selection.', 'error')
            return redirect(url_for('vote'))

        try:
            # The API decides; a stale session must not get a second attempt
            if api.has_voted(voter_name):
                voting_session.sign_out_voter()
                flash(ALREADY_VOTED, 'error')
                return redirect(url_for('index'))

            api.cast_vote(voter_name, candidate_id)
        except ApiError as e:
            flash(e.message, 'error')
            return redirect(url_for('vote'))

        logger.info(f"Vote submitted for candidate_id={candidate_id}")
        voting_session.sign_out_voter()
        return render_template('confirmation.html', voting_session=voting_session, voter_name=voter_name)

    @app.route('/results')
    @with_session
    def results(voting_session):
        """Public results; hidden until published unless the viewer is admin."""
        try:
            published = bool(api.get_settings().get('results_published'))
            if not published and not voting_session.is_admin:
                return render_template('results.html', voting_session=voting_session,
                                       published=False, results=None)
            results_data = api.get_results()
        except ApiError as e:
            flash(e.message, 'error')
            return render_template('results.html', voting_session=voting_session,
                                   published=False, results=None, error=True)

        return render_template('results.html', voting_session=voting_session,
                               published=published, results=results_data, winner_label='Winner')

    # ───────────────────────────────────────────────────────────────
    # Admin pages
    # ───────────────────────────────────────────────────────────────

    @app.route('/admin/login', methods=['GET', 'POST'])
    @with_session
    def admin_login(voting_session):
        if request.method == 'POST':
            username = request.form.get('username', '').strip()
            password = request.form.get('password', '').strip()
            try:
                token = api.admin_login(username, password)
            except ApiError as e:
                flash(e.message, 'error')
                return render_template('admin_login.html', voting_session=voting_session), 401

            voting_session.sign_in_admin(token)
            return redirect(url_for('admin_dashboard'))

        return render_template('admin_login.html', voting_session=voting_session)

    @app.route('/admin/logout', methods=['GET', 'POST'])
    @with_session
    def admin_logout(voting_session):
        voting_session.sign_out_admin()
        flash('You have been logged out.', 'success')
        return redirect(url_for('index'))

    @app.route('/admin')
    @with_session
    @admin_required
    def admin_dashboard(voting_session):
        """Live results, voter list and candidate management."""
        try:
            results_data = api.get_results()
            voters = api.list_voters()
            candidates = api.list_candidates()
            settings = api.get_settings()
        except ApiError as e:
            flash(e.message, 'error')
            results_data, voters, candidates, settings = None, [], [], {}

        return render_template(
            'admin.html',
            voting_session=voting_session,
            results=results_data,
            voters=voters,
            candidates=candidates,
            settings=settings,
            winner_label='Current Leader'
        )

    @app.route('/admin/candidates', methods=['POST'])
    @with_session
    @admin_required
    def admin_add_candidate(voting_session):
        name = request.form.get('name', '').strip()
        if not name:
            flash('Candidate name is required', 'error')
            return redirect(url_for('admin_dashboard'))

        admin_call(
            voting_session,
            lambda: api.add_candidate(voting_session.admin_token, name),
            'Candidate added successfully!'
        )
        return redirect(url_for('admin_dashboard'))

    @app.route('/admin/candidates/update', methods=['POST'])
    @with_session
    @admin_required
    def admin_update_candidates(voting_session):
        """Rename every candidate whose name field changed."""
        try:
            candidates = api.list_candidates()
        except ApiError as e:
            flash(e.message, 'error')
            return redirect(url_for('admin_dashboard'))

        updates = []
        for candidate in candidates:
            new_name = request.form.get(f"name-{candidate['id']}", '').strip()
            if new_name and new_name != candidate['name']:
                updates.append((candidate['id'], new_name))

        if not updates:
            flash('No changes detected.', 'info')
            return redirect(url_for('admin_dashboard'))

        def apply_updates():
            for candidate_id, new_name in updates:
                api.update_candidate(voting_session.admin_token, candidate_id, new_name)

        admin_call(voting_session, apply_updates, 'Candidates updated successfully!')
        return redirect(url_for('admin_dashboard'))

    @app.route('/admin/candidates/<int:candidate_id>/delete', methods=['POST'])
    @with_session
    @admin_required
    def admin_remove_candidate(voting_session, candidate_id):
        admin_call(
            voting_session,
            lambda: api.remove_candidate(voting_session.admin_token, candidate_id),
            'Candidate removed successfully!'
        )
        return redirect(url_for('admin_dashboard'))

    @app.route('/admin/publish', methods=['POST'])
    @with_session
    @admin_required
    def admin_publish(voting_session):
        publish = request.form.get('publish', 'true').lower() == 'true'

        if publish:
            try:
                if api.get_results()['totalVotes'] == 0:
                    flash('No votes to publish.', 'error')
                    return redirect(url_for('admin_dashboard'))
            except ApiError as e:
                flash(e.message, 'error')
                return redirect(url_for('admin_dashboard'))

        result = admin_call(
            voting_session,
            lambda: api.publish_results(voting_session.admin_token, publish),
            'Results published successfully!' if publish else 'Results unpublished successfully!'
        )
        if result and publish:
            return redirect(url_for('results'))
        return redirect(url_for('admin_dashboard'))

    @app.route('/admin/reset', methods=['POST'])
    @with_session
    @admin_required
    def admin_reset(voting_session):
        admin_call(
            voting_session,
            lambda: api.reset_votes(voting_session.admin_token),
            'All votes have been reset successfully.'
        )
        return redirect(url_for('admin_dashboard'))

    @app.route('/health')
    def health():
        """Health check endpoint."""
        api_healthy = api.check_health()

        return jsonify({
            'status': 'healthy' if api_healthy else 'degraded',
            'ui': 'up',
            'election_api': 'up' if api_healthy else 'down'
        }), 200 if api_healthy else 503

    return app


app = create_app()


if __name__ == '__main__':
    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
