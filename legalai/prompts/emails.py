# legalai/prompts/emails.py
# Email templates: (subject, html, plain text) per notification kind.

BASE_STYLE = """
<style>
  * { font-family: Arial, sans-serif; }
  .container { max-width: 600px; margin: 0 auto; padding: 20px; }
  .header { background: #007bff; color: white; padding: 20px; text-align: center; border-radius: 5px 5px 0 0; }
  .content { background: #f9f9f9; padding: 20px; border-radius: 0 0 5px 5px; }
  .footer { text-align: center; color: #666; font-size: 12px; padding: 20px; }
  .button { background: #007bff; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; display: inline-block; }
  .code { font-size: 24px; font-weight: bold; text-align: center; color: #007bff; letter-spacing: 4px; }
</style>
"""

LAYOUT = """<!DOCTYPE html>
<html>
<head>{style}</head>
<body>
  <div class="container">
    <div class="header"><h1>{title}</h1></div>
    <div class="content">{body}</div>
    <div class="footer"><p>&copy; {year} LegalAI. All rights reserved.</p></div>
  </div>
</body>
</html>"""

REGISTRATION = {
    "subject": "Welcome to LegalAI!",
    "title": "Welcome aboard!",
    "html": """<h2>Hello {name},</h2>
<p>Your account has been successfully created.</p>
<p>Upload a contract or agreement and we will point out the risks worth a second look.</p>
<a href="{app_url}/login" class="button">Login Now</a>""",
    "text": "Hello {name},\n\nWelcome to LegalAI! Your account has been successfully created.",
}

LOGIN = {
    "subject": "Successful Login",
    "title": "Login Notification",
    "html": """<h2>Hello {name},</h2>
<p>You logged in to your account at {timestamp}.</p>
<p>If this wasn't you, please secure your account immediately.</p>
<a href="{app_url}/forgot-password" class="button">Secure Account</a>""",
    "text": "Hello {name},\n\nYou logged in at {timestamp}. If this wasn't you, reset your password.",
}

OTP = {
    "subject": "Password Reset OTP",
    "title": "Password Reset",
    "html": """<h2>Your OTP Code</h2>
<p class="code">{otp}</p>
<p>This code expires in {ttl_minutes} minutes. Use it to reset your password.</p>
<p>If you didn't request this, please ignore this email.</p>""",
    "text": "Your OTP for password reset is: {otp}. It expires in {ttl_minutes} minutes.",
}

PASSWORD_CHANGED = {
    "subject": "Password Change Confirmation",
    "title": "Password Changed",
    "html": """<h2>Hello {name},</h2>
<p>Your password was successfully changed on {timestamp}.</p>
<p>If you did not make this change, reset your password immediately.</p>
<a href="{app_url}/forgot-password" class="button">Reset Password</a>""",
    "text": "Hello {name},\n\nYour password was successfully changed on {timestamp}.",
}

TEMPLATES = {
    "registration": REGISTRATION,
    "login": LOGIN,
    "otp": OTP,
    "password_changed": PASSWORD_CHANGED,
}
