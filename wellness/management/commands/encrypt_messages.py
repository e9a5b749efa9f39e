from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from wellness import firebase
from wellness.security import encrypt_value, get_fernet, is_encrypted


class Command(BaseCommand):
    help = "Encrypt any stored chat message text that is still plaintext. Requires ENCRYPTION_KEY."

    def add_arguments(self, parser):
        parser.add_argument("--batch-size", type=int, default=400,
                            help="Documents per Firestore write batch (max 500).")

    def handle(self, *args, **options):
        if get_fernet() is None:
            raise CommandError("ENCRYPTION_KEY is not set; nothing to encrypt with.")

        db = firebase.get_db()
        batch_size = min(max(options["batch_size"], 1), 500)
        total = 0
        updated = 0
        batch = db.batch()
        pending = 0

        for snapshot in db.collection(settings.CHAT_COLLECTION).stream():
            total += 1
            text = (snapshot.to_dict() or {}).get("text")
            if text and not is_encrypted(text):
                batch.update(snapshot.reference, {"text": encrypt_value(text)})
                pending += 1
                updated += 1
                if pending >= batch_size:
                    batch.commit()
                    batch = db.batch()
                    pending = 0

        if pending:
            batch.commit()
        self.stdout.write(self.style.SUCCESS(f"Scanned {total} messages. Encrypted {updated}."))
