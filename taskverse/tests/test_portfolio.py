import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from taskverse.db import ProfileRecord
from taskverse.portfolio import (
    content_disposition,
    generate_portfolio_pdf,
    portfolio_filename,
    render_portfolio_html,
    summarize_portfolio,
)
from taskverse.services import PortfolioItem


def _item(**overrides):
    fields = {
        "id": "s1",
        "task_title": "Design a logo",
        "business_name": "Acme",
        "completed_date": "2024-03-05",
        "description": "Delivered three concepts",
        "task_description": "Vector logo",
        "review": "Lovely <b>work</b>",
        "skills": ["Figma", "Branding"],
        "rating": 5,
        "points": 50,
    }
    fields.update(overrides)
    return PortfolioItem(**fields)


class PortfolioTests(unittest.TestCase):
    def setUp(self):
        self.profile = ProfileRecord(
            id="intern-1",
            email="ada@example.com",
            name="Ada Lovelace",
            role="intern",
            points=150,
            level=2,
        )

    def test_summary(self):
        items = [_item(), _item(id="s2", rating=4, skills=["Figma", "Copywriting"])]
        summary = summarize_portfolio(self.profile, items)
        self.assertEqual(summary.level, 2)
        self.assertEqual(summary.points, 150)
        self.assertEqual(summary.projects_completed, 2)
        self.assertEqual(summary.average_rating, "4.5")
        self.assertEqual(summary.skills, ["Figma", "Branding", "Copywriting"])

    def test_empty_summary(self):
        summary = summarize_portfolio(self.profile, [])
        self.assertEqual(summary.average_rating, "N/A")
        self.assertEqual(summary.skills, [])

    def test_render_html(self):
        html = render_portfolio_html(
            self.profile, [_item()], generated_on=date(2024, 4, 1)
        )
        self.assertIn("Ada Lovelace", html)
        self.assertIn("Generated: April 01, 2024", html)
        self.assertIn("March 05, 2024", html)
        self.assertIn("5/5", html)
        self.assertIn("Business Feedback:", html)
        self.assertIn("Lovely &lt;b&gt;work&lt;/b&gt;", html)

    def test_render_html_without_review(self):
        html = render_portfolio_html(self.profile, [_item(review=None)])
        self.assertNotIn("Business Feedback:", html)

    @patch("taskverse.portfolio._get_weasyprint")
    def test_generate_pdf(self, mock_weasyprint):
        def write_pdf(target):
            target.write(b"%PDF-1.7 fake")

        html_cls = MagicMock()
        html_cls.return_value.write_pdf.side_effect = write_pdf
        mock_weasyprint.return_value = html_cls

        pdf = generate_portfolio_pdf(self.profile, [_item()])
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertIn("Ada Lovelace", html_cls.call_args.kwargs["string"])

    def test_content_disposition_escapes_name(self):
        header = content_disposition(portfolio_filename('Zoë "Z" 李'))
        self.assertEqual(
            header,
            'attachment; filename="Zo___Z____Portfolio.pdf"; '
            "filename*=UTF-8''Zo%C3%AB_%22Z%22_%E6%9D%8E_Portfolio.pdf",
        )

    def test_filename(self):
        self.assertEqual(portfolio_filename("Ada  Lovelace"), "Ada_Lovelace_Portfolio.pdf")


if __name__ == "__main__":
    unittest.main()
