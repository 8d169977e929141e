# /carehome/utils/encryption_util.py
from cryptography.fernet import Fernet, InvalidToken
from flask import current_app

class Encryptor:
    """
    Encrypts resident identifiers (NHS number, date of birth) at rest.
    It must be initialized with the Flask app to load the key.
    """
    def __init__(self, app=None):
        self.fernet = None
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initializes the Fernet suite with the key from the app's config."""
        key = app.config.get('CARE_ENCRYPTION_KEY')
        if not key:
            raise ValueError("CARE_ENCRYPTION_KEY not set in the Flask application config.")

        self.fernet = Fernet(key.encode())

    def encrypt(self, data: str) -> str:
        """Encrypts a string."""
        if self.fernet is None:
            raise RuntimeError("Encryptor has not been initialized with an app.")

        if not isinstance(data, str):
            data = str(data)

        encrypted_data = self.fernet.encrypt(data.encode('utf-8'))
        return encrypted_data.decode('utf-8')

    def decrypt(self, token: str) -> str | None:
        """Decrypts an encrypted token string."""
        if self.fernet is None:
            raise RuntimeError("Encryptor has not been initialized with an app.")

        if not token:
            return None

        try:
            decrypted_data = self.fernet.decrypt(token.encode('utf-8'))
            return decrypted_data.decode('utf-8')
        except InvalidToken:
            current_app.logger.error("Decryption failed: stored value does not match the current key.")
            return None

# Create a single, uninitialized instance to be imported by other modules.
encryptor = Encryptor()
