"""
Server-rendered pages: the LearnVerse marketing site, the admin login and the
admin landing page.
"""

from __future__ import annotations

import html

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from admin_api.dependencies import forwarded_header

router = APIRouter()

SITE_NAME = "LearnVerse"

EXAM_LINKS = (
    ("Engineering", "https://engineering.learnverse.com"),
    ("Medical", "https://medical.learnverse.com"),
    ("Railway", "https://railway.learnverse.com"),
    ("SSC", "https://ssc.learnverse.com"),
    ("Boards", "https://boards.learnverse.com"),
)

FEATURES = (
    ("Live Classes", "Real-time interactive learning with top educators."),
    ("Recorded Lessons", "Access unlimited library of high-quality recordings."),
    ("Smart Planner", "AI-driven study scheduler to keep you on track."),
    ("Instant Doubts", "Get your questions answered instantly by experts."),
    ("Mock Tests", "Practice to perfection with detailed analysis."),
    ("Revision Notes", "Concise, high-impact notes for quick revision."),
)

FOOTER_SECTIONS = (
    (
        "Learning Paths",
        (
            ("Boards", "/upcoming"),
            ("NEET UG", "https://learn.biologykingdom.ac"),
            ("Nursing", "/upcoming"),
            ("Engineering", "/upcoming"),
            ("Defence", "/upcoming"),
        ),
    ),
    (
        "Company",
        (
            ("About Us", "/about"),
            ("Careers", "/careers"),
            ("Blog", "/blog"),
            ("Press", "/press"),
        ),
    ),
    (
        "Support",
        (
            ("Help Center", "/help"),
            ("Contact Us", "/contact"),
            ("Refund Policy", "/refund-policy"),
            ("Privacy Policy", "/privacy-policy"),
            ("Terms of Service", "/terms"),
        ),
    ),
    (
        "Follow Us",
        (
            ("Instagram", "https://instagram.com/learnverse"),
            ("YouTube", "https://youtube.com/learnverse"),
            ("LinkedIn", "https://linkedin.com/company/learnverse"),
            ("Twitter", "https://twitter.com/learnverse"),
        ),
    ),
)

LOGIN_ERRORS = {
    "unauthorized": "Please sign in to continue.",
    "no_role": "Unable to verify user role.",
    "system_error": "Something went wrong while checking your access. Please try again.",
    "callback_failed": "Sign-in could not be completed. Please try again.",
}

LOGIN_SCRIPT = """
<script>
document.getElementById("login-form").addEventListener("submit", async (event) => {
  event.preventDefault();
  const form = event.target;
  const response = await fetch("/api/auth/login", {
    method: "POST",
    headers: {"Content-Type": "application/json"},
    body: JSON.stringify({email: form.email.value.trim(), password: form.password.value}),
  });
  if (response.ok) {
    window.location.href = "/admin/dashboard";
    return;
  }
  const body = await response.json();
  document.getElementById("login-error").textContent =
    body.detail || "Login failed. Please check your credentials.";
});
</script>
"""


def _link(label: str, href: str) -> str:
    return f'<a href="{html.escape(href)}">{html.escape(label)}</a>'


def _layout(title: str, body: str) -> str:
    """Base HTML layout for all pages."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{html.escape(title)}</title>
</head>
<body>
{body}
</body>
</html>
"""


def render_header() -> str:
    links = "\n".join(f"        <li>{_link(name, href)}</li>" for name, href in EXAM_LINKS)
    return f"""<header>
    <a class="brand" href="/">{SITE_NAME}</a>
    <nav>
    <ul>
{links}
    </ul>
    </nav>
    <a class="cta" href="/upcoming">Get Started</a>
</header>"""


def render_footer() -> str:
    sections = []
    for title, links in FOOTER_SECTIONS:
        items = "".join(f"<li>{_link(name, href)}</li>" for name, href in links)
        sections.append(f"<section><h3>{html.escape(title)}</h3><ul>{items}</ul></section>")
    return "<footer>\n" + "\n".join(sections) + f"\n<p>&copy; {SITE_NAME}</p>\n</footer>"


def render_home() -> str:
    features = "\n".join(
        f"<li><h3>{html.escape(title)}</h3><p>{html.escape(desc)}</p></li>"
        for title, desc in FEATURES
    )
    body = f"""{render_header()}
<main>
<section class="hero">
    <h1>Learn Smarter. Grow Faster.</h1>
    <p>Trusted by 10,000+ students</p>
</section>
<section class="features">
    <h2>Why Choose {SITE_NAME}?</h2>
    <ul>
{features}
    </ul>
</section>
</main>
{render_footer()}"""
    return _layout(SITE_NAME, body)


def render_upcoming() -> str:
    body = """<main>
<h1>Page Under Construction</h1>
<p>This page is currently being built. Stay tuned, something amazing is coming soon!</p>
<a href="/">Back to home</a>
</main>"""
    return _layout(f"Upcoming · {SITE_NAME}", body)


def render_login(error: str | None = None) -> str:
    message = LOGIN_ERRORS.get(error or "", "")
    body = f"""<main>
<h1>Admin Portal</h1>
<p>Secure access for authorized personnel only</p>
<p id="login-error" role="alert">{html.escape(message)}</p>
<form id="login-form" method="post" action="/api/auth/login">
    <label>Email <input type="email" name="email" required /></label>
    <label>Password <input type="password" name="password" minlength="8" required /></label>
    <button type="submit">Sign In</button>
</form>
</main>
{LOGIN_SCRIPT}"""
    return _layout("Admin Login", body)


def render_not_allowed() -> str:
    body = """<main>
<h1>Access Denied</h1>
<p>Authorization Level Insufficient</p>
<p>Access attempt logged. Session terminated.</p>
<a href="/login">Back to login</a>
</main>"""
    return _layout("Access Denied", body)


def render_admin_home(email: str | None, role: str | None) -> str:
    who = html.escape(email or "admin")
    body = f"""<main>
<h1>Welcome to Admin Portal</h1>
<p>Signed in as {who} ({html.escape(role or "")})</p>
<ul>
    <li><a href="/api/admin/dashboard">Dashboard data</a></li>
    <li><a href="/api/admin/subjects">Subjects</a></li>
    <li><a href="/api/admin/questions">Questions</a></li>
    <li><a href="/api/admin/banners">Banners</a></li>
</ul>
<form method="post" action="/api/auth/logout"><button type="submit">Sign Out</button></form>
</main>"""
    return _layout("Admin Portal", body)


@router.get("/", response_class=HTMLResponse)
def home():
    return render_home()


@router.get("/upcoming", response_class=HTMLResponse)
def upcoming():
    return render_upcoming()


@router.get("/login", response_class=HTMLResponse)
def login_page(error: str | None = None):
    return render_login(error)


@router.get("/not-allowed", response_class=HTMLResponse)
def not_allowed():
    return render_not_allowed()


@router.get("/admin", response_class=HTMLResponse)
@router.get("/admin/dashboard", response_class=HTMLResponse)
def admin_home(request: Request):
    return render_admin_home(
        forwarded_header(request, "x-user-email"),
        forwarded_header(request, "x-user-role"),
    )
