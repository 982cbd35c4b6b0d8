from django.core.management.base import BaseCommand

from rag.store import get_vector_store


class Command(BaseCommand):
    help = "Load the persisted vector store, or ingest the configured documents and save it."

    def handle(self, *args, **options):
        store = get_vector_store()
        self.stdout.write(self.style.SUCCESS(
            f"Vector store {store.state.value}: {len(store)} chunk(s), {store.dimensions or 0} dimensions"
        ))
