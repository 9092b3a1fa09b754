import os

# Point the app at an in-memory database and test credentials before anything imports app.core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_fake"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["NOTIFICATION_SERVICE_URL"] = ""
os.environ["ENFORCE_AMOUNT_MATCH"] = "true"
