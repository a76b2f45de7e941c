"""Flask operator console: shows the environment's live state and lets an operator
wake or suspend it outside the EventBridge schedule. No state of its own."""

import markdown
from dotenv import load_dotenv
from flask import Flask, jsonify, render_template_string

from environment_scheduler.errors import InvalidInvocationError, SchedulerError
from environment_scheduler.models import DesiredState, EnvironmentTarget
from environment_scheduler.resource_control import AwsResourceControlClient
from environment_scheduler.scheduler import EnvironmentScheduler
from environment_scheduler.settings import SchedulerConfig

load_dotenv()  # Only needed for local development

app = Flask(__name__)

HOME_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Environment Scheduler</title>
</head>
<body>
    <h1>Environment Scheduler</h1>
    {% if error %}
        <p class="error">Unable to load environment: {{ error }}</p>
    {% else %}
        {{ status_html | safe }}
    {% endif %}
</body>
</html>
"""


def get_scheduler():
    """Build a scheduler from the process environment, created once per process."""
    if not hasattr(get_scheduler, "_scheduler"):
        config = SchedulerConfig.from_env()
        get_scheduler._scheduler = EnvironmentScheduler(AwsResourceControlClient.from_config(config), config)
    return get_scheduler._scheduler


def describe_environment(scheduler):
    """Observed state of both resources plus the dry-run plan for each target."""
    compute, database = scheduler.observe()
    plans = {}
    for state in DesiredState:
        target = EnvironmentTarget(scheduler.config.environment_id, state)
        plans[state.action] = scheduler.plan(target, observed=(compute, database)).to_list()
    return {
        "environmentId": scheduler.config.environment_id,
        "compute": compute.to_dict(),
        "database": database.to_dict(),
        "plans": plans,
    }


def format_status_markdown(status):
    """Render describe_environment output as Markdown for the homepage."""
    compute = status["compute"]
    lines = [
        f"## {status['environmentId']}",
        "",
        f"- **Compute**: desired {compute['desiredCount']}, running {compute['runningCount']}",
        f"- **Database**: {status['database']['lifecycleState']}",
        "",
    ]
    for action, commands in status["plans"].items():
        if commands:
            lines.append(f"**{action}** would issue: " + ", ".join(f"`{c}`" for c in commands))
        else:
            lines.append(f"**{action}** would issue no commands")
        lines.append("")
    return "\n".join(lines)


@app.route("/health")
def health():
    return "OK", 200


@app.route("/")
def homepage():
    try:
        status = describe_environment(get_scheduler())
    except SchedulerError as e:
        return render_template_string(HOME_TEMPLATE, error=str(e)), 502
    status_html = markdown.markdown(format_status_markdown(status))
    return render_template_string(HOME_TEMPLATE, status_html=status_html, error=None)


@app.route("/api/environment")
def environment_status():
    try:
        return jsonify(describe_environment(get_scheduler())), 200
    except SchedulerError as e:
        return jsonify({"error": str(e), "error_code": e.code}), 502


@app.route("/api/environment/<action>", methods=["POST"])
def reconcile_environment(action):
    try:
        desired_state = DesiredState.from_action(action)
    except InvalidInvocationError as e:
        return jsonify({"error": str(e)}), 400
    try:
        scheduler = get_scheduler()
    except SchedulerError as e:
        return jsonify({"error": str(e), "error_code": e.code}), 502

    target = EnvironmentTarget(scheduler.config.environment_id, desired_state)
    result = scheduler.reconcile(target)
    return jsonify(result.to_dict()), 200 if result.ok else 502


if __name__ == "__main__":
    app.run(debug=False, port=8000, host="0.0.0.0")
