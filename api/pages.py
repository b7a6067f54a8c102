"""Server-rendered pages."""

import json
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"])

DEFAULT_NEXT_PATH = "/signin"


def safe_redirect_path(next_path: Optional[str]) -> str:
    """Same-site path to redirect to after verification."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return DEFAULT_NEXT_PATH
    if "\\" in next_path:
        return DEFAULT_NEXT_PATH
    return next_path


def _script_json(value: dict) -> str:
    # Keep "</script>" inside a value from closing the script tag
    return json.dumps(value).replace("<", "\\u003c")


@router.get("/verify", response_class=HTMLResponse)
async def verify_page(email: str = "", next: str = DEFAULT_NEXT_PATH):
    """Email verification page: enter the 6-digit code or ask for a new one."""
    config = _script_json({"email": email, "next": safe_redirect_path(next)})
    return VERIFY_PAGE.replace("__CONFIG__", config)


VERIFY_PAGE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Verify your email - chatdesk</title>
    <style>
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: #0a0a0a;
            color: #e5e5e5;
            min-height: 100vh;
            padding: 20px;
        }
        #verify-form {
            max-width: 360px;
            margin: 100px auto;
            padding: 30px;
            background: #1a1a1a;
            border-radius: 8px;
        }
        h1 { margin-bottom: 10px; color: #fff; font-size: 22px; }
        p.hint { color: #888; font-size: 14px; margin-bottom: 20px; }
        #verify-form input {
            width: 100%;
            padding: 10px;
            margin-bottom: 15px;
            border: 1px solid #333;
            border-radius: 4px;
            background: #0a0a0a;
            color: #fff;
        }
        #code { letter-spacing: 6px; font-size: 20px; text-align: center; }
        #verify-form button {
            width: 100%;
            padding: 10px;
            margin-bottom: 10px;
            background: #2563eb;
            color: #fff;
            border: none;
            border-radius: 4px;
            cursor: pointer;
        }
        #verify-form button.secondary { background: #333; }
        #verify-form button:disabled { opacity: 0.6; cursor: default; }
        .message { font-size: 14px; min-height: 20px; }
        .message.error { color: #ef4444; }
        .message.success { color: #22c55e; }
    </style>
</head>
<body>
    <div id="verify-form">
        <h1>Verify your email</h1>
        <p class="hint">Enter the 6-digit code we sent to your inbox.</p>
        <input type="email" id="email" placeholder="Email" required>
        <input type="text" id="code" placeholder="000000" maxlength="6"
               inputmode="numeric" autocomplete="one-time-code">
        <button id="verify-btn" onclick="verify()">Verify</button>
        <button id="resend-btn" class="secondary" onclick="resend()">Resend code</button>
        <div id="message" class="message"></div>
    </div>

    <script>
        const config = __CONFIG__;
        document.getElementById('email').value = config.email;

        function showMessage(text, kind) {
            const el = document.getElementById('message');
            el.textContent = text;
            el.className = 'message ' + kind;
        }

        function post(url, body) {
            return fetch(url, {
                method: 'POST',
                headers: { 'Content-Type': 'application/json' },
                body: JSON.stringify(body)
            }).then(r => r.json().then(data => ({ ok: r.ok, data })));
        }

        function verify() {
            const email = document.getElementById('email').value.trim();
            const code = document.getElementById('code').value.trim();
            if (!email || !/^\\d{6}$/.test(code)) {
                showMessage('Enter your email and the 6-digit code', 'error');
                return;
            }
            const btn = document.getElementById('verify-btn');
            btn.disabled = true;
            post('/api/auth/user/verify', { email, code })
                .then(({ ok, data }) => {
                    if (ok && data.success) {
                        showMessage('Email verified. Redirecting...', 'success');
                        window.location.href = config.next;
                    } else {
                        showMessage(data.error || 'Verification failed', 'error');
                        btn.disabled = false;
                    }
                })
                .catch(() => {
                    showMessage('Network error, please try again', 'error');
                    btn.disabled = false;
                });
        }

        function resend() {
            const email = document.getElementById('email').value.trim();
            if (!email) {
                showMessage('Enter your email first', 'error');
                return;
            }
            post('/api/auth/user/resend-verification', { email })
                .then(({ ok, data }) => {
                    if (ok && data.success) {
                        showMessage('A new code has been sent', 'success');
                    } else {
                        showMessage(data.error || 'Could not resend the code', 'error');
                    }
                })
                .catch(() => showMessage('Network error, please try again', 'error'));
        }

        document.getElementById('code').addEventListener('keypress', e => {
            if (e.key === 'Enter') verify();
        });
    </script>
</body>
</html>
"""
