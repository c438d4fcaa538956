"""Terminal HTML pages shown in the user's browser during sign-in."""

import html
from typing import Optional

_PAGE_TEMPLATE = """
    <!DOCTYPE html>
    <html>
    <head>
        <title>{title}</title>
        <style>
            body {{
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                display: flex;
                justify-content: center;
                align-items: center;
                min-height: 100vh;
                margin: 0;
                background: {background};
            }}
            .container {{
                background: white;
                padding: 40px;
                border-radius: 12px;
                box-shadow: 0 10px 40px rgba(0,0,0,0.2);
                text-align: center;
                max-width: 400px;
            }}
            .icon {{
                font-size: 64px;
                margin-bottom: 20px;
            }}
            h2 {{
                color: #333;
                margin-bottom: 10px;
            }}
            .detail {{
                color: #ee5a5a;
                background: #fff5f5;
                padding: 15px;
                border-radius: 8px;
                margin: 20px 0;
            }}
            p {{
                color: #666;
                line-height: 1.6;
            }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="icon">{icon}</div>
            <h2>{title}</h2>
            {detail}
            <p>{message}</p>
        </div>
    </body>
    </html>
    """

_SUCCESS_BACKGROUND = "linear-gradient(135deg, #667eea 0%, #764ba2 100%)"
_ERROR_BACKGROUND = "linear-gradient(135deg, #ff6b6b 0%, #ee5a5a 100%)"


def render_page(
    title: str, message: str, detail: Optional[str] = None, success: bool = False
) -> str:
    """
    Render a self-contained status page.

    Args:
        title: Page heading.
        message: Instruction line shown under the heading.
        detail: Optional provider-supplied text; always HTML-escaped.
        success: Selects the success styling.
    """
    detail_html = (
        f'<div class="detail">{html.escape(detail)}</div>' if detail else ""
    )
    return _PAGE_TEMPLATE.format(
        title=html.escape(title),
        message=html.escape(message),
        detail=detail_html,
        icon="&#10004;" if success else "&#10060;",
        background=_SUCCESS_BACKGROUND if success else _ERROR_BACKGROUND,
    )


def authorization_failed_page(detail: Optional[str] = None) -> str:
    return render_page("Authorization failed.", "You can close this tab.", detail)


def session_expired_page() -> str:
    return render_page("Session expired.", "Please try again.")


def token_exchange_failed_page(reason: Optional[str]) -> str:
    return render_page("Token exchange failed.", "Please try again.", reason)


def access_denied_page(domain: str) -> str:
    message = (
        f"This tool is restricted to {domain} accounts."
        if domain
        else "This account is not allowed to use this tool."
    )
    return render_page("Access denied.", message)


def authorized_page() -> str:
    return render_page(
        "Authorized!",
        "You can close this tab and return to your assistant.",
        success=True,
    )


def token_retrieval_failed_page() -> str:
    return render_page("Token retrieval failed.", "Check the terminal for details.")
