from django.test import TestCase

from catalog.models import CatalogCommit


class TestCatalogCommitModel(TestCase):
    def test_str(self):
        commit = CatalogCommit.objects.create(
            action="delete_product", product_id="1", revision="def",
            message="Delete product: Coat", product_count=0,
        )
        self.assertIn("delete_product", str(commit))
        self.assertIn("def", str(commit))
