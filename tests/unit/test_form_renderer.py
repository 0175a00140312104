from visa_workflow.application.form_renderer import StageFormRenderer
from visa_workflow.domain.form_schema import VISA_STAGE_SCHEMAS, StageFieldSchema, StageSchemaRegistry, choice, text
from visa_workflow.domain.types import DocumentAttachment, DocumentStatus, FormState


def _names(form) -> list:
    return [field.descriptor.name for field in form.fields]


def test_render_applies_display_defaults_and_document_status() -> None:
    renderer = StageFormRenderer(VISA_STAGE_SCHEMAS)
    state = FormState(
        {
            "application_proof": DocumentAttachment("file:///tmp/proof.pdf", "proof.pdf"),
            "application_proof_status": "Approved",
        }
    )

    form = renderer.render("visa", state)
    by_name = {field.descriptor.name: field for field in form.fields}

    assert form.title == "University Application"
    assert by_name["submission_method"].value == "Online"
    assert by_name["application_status"].value == "Submitted"
    assert by_name["application_proof"].uploaded is True
    assert by_name["application_proof"].status == DocumentStatus.APPROVED
    assert "submission_method" not in state


def test_rejection_fields_only_show_for_rejected_visa() -> None:
    renderer = StageFormRenderer(VISA_STAGE_SCHEMAS)

    pending = renderer.render("visaStatus", FormState())
    rejected = renderer.render("visaStatus", FormState({"visa_status": "Rejected"}))

    assert "rejection_reason" not in _names(pending)
    assert "appeal_status" not in _names(pending)
    assert {"rejection_reason", "appeal_status"} <= set(_names(rejected))


def test_documents_without_upload_render_pending() -> None:
    form = StageFormRenderer(VISA_STAGE_SCHEMAS).render("embassydocument", FormState())

    assert len(form.fields) == 5
    assert all(field.uploaded is False for field in form.fields)
    assert all(field.status == DocumentStatus.PENDING for field in form.fields)


def test_validate_reports_required_and_invalid_choices() -> None:
    registry = StageSchemaRegistry(
        [
            StageFieldSchema(
                "application",
                "Application",
                (
                    text("passport_no", "Passport No", required=True),
                    choice("currency", "Currency", ("USD", "EUR")),
                ),
            )
        ]
    )
    renderer = StageFormRenderer(registry)

    issues = renderer.validate("application", FormState({"passport_no": "  ", "currency": "JPY"}))

    assert {(issue.field, issue.code) for issue in issues} == {
        ("passport_no", "required"),
        ("currency", "invalid_choice"),
    }
    assert renderer.validate("application", FormState({"passport_no": "X1", "currency": "EUR"})) == []


def test_hidden_fields_are_not_validated() -> None:
    renderer = StageFormRenderer(VISA_STAGE_SCHEMAS)
    state = FormState({"visa_status": "Approved", "appeal_status": "Bogus"})

    assert renderer.validate("visaStatus", state) == []
