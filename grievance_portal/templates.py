# grievance_portal/templates.py
"""HTML bodies for the two emails the portal sends."""

import datetime
from html import escape

INSTITUTION = "Sri Vasavi Engineering College"

_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: #667eea; color: white; padding: 20px; text-align: center; border-radius: 8px 8px 0 0; }
    .content { background: #f9f9f9; padding: 30px; border-radius: 0 0 8px 8px; }
    .code-box { background: white; border: 2px dashed #667eea; padding: 20px; text-align: center; font-size: 28px; font-weight: bold; letter-spacing: 6px; color: #667eea; margin: 20px 0; border-radius: 8px; }
    .footer { text-align: center; margin-top: 20px; color: #666; font-size: 12px; }
"""


def _wrap(title: str, inner: str) -> str:
    year = datetime.datetime.utcnow().year
    return f"""
<html>
<head><style>{_STYLE}</style></head>
<body>
  <div class='container'>
    <div class='header'>
      <h1>{escape(title)}</h1>
      <p>{INSTITUTION}</p>
    </div>
    <div class='content'>
      {inner}
    </div>
    <div class='footer'>
      <p>This is an automated email. Please do not reply.</p>
      <p>&copy; {year} {INSTITUTION}. All rights reserved.</p>
    </div>
  </div>
</body>
</html>
"""


def otp_email(code: str, expiry_minutes: int) -> str:
    inner = f"""
      <h2>Email Verification</h2>
      <p>Your One-Time Password (OTP) for submitting a grievance is:</p>
      <div class='code-box'>{escape(code)}</div>
      <p><strong>This OTP is valid for {int(expiry_minutes)} minutes.</strong></p>
      <p>If you didn't request this OTP, please ignore this email.</p>
"""
    return _wrap("Grievance Portal", inner)


def tracking_email(tracking_id: int, name: str, grievance_type: str, frontend_url: str) -> str:
    submitted = datetime.datetime.utcnow().strftime("%Y-%m-%d %H:%M UTC")
    inner = f"""
      <h2>Dear {escape(name)},</h2>
      <p>Your grievance has been submitted and is being reviewed.</p>
      <p>Your Tracking ID:</p>
      <div class='code-box'>{int(tracking_id)}</div>
      <p><strong>Grievance Type:</strong> {escape(grievance_type)}</p>
      <p><strong>Status:</strong> Pending Review</p>
      <p><strong>Submitted On:</strong> {submitted}</p>
      <p>Track your grievance at <a href='{escape(frontend_url, quote=True)}'>{escape(frontend_url)}</a>
         using the tracking ID above.</p>
"""
    return _wrap("Grievance Submitted Successfully", inner)
