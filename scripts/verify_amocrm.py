import asyncio
import os

from amoform.core.config import settings
from amoform.core.exceptions import CRMError
from amoform.integrations.crm.amocrm import AmoCRMClient
from amoform.schemas import RecordKind, Submission
from amoform.services.submitter import FormSubmitter


async def main():
    print(f"--- Verifying amoCRM integration at {settings.amocrm_url} ---")

    async with AmoCRMClient() as client:
        submitter = FormSubmitter(client)

        print("\n--- 1. Account metadata ---")
        try:
            ids = await submitter.field_ids()
            print(f"✅ EMAIL field: {ids.email}, PHONE field: {ids.phone}")
        except CRMError as e:
            print(f"❌ Could not read account metadata: {e}")
            return

        test_email = os.getenv("TEST_EMAIL", "verification@example.com")
        test_phone = os.getenv("TEST_PHONE", "+70000000000")

        print(f"\n--- 2. Contact lookup ({test_email}, {test_phone}) ---")
        contact = await submitter.find_contact([test_email, test_phone])
        if contact:
            print(f"✅ Contact found: {contact.id} {contact.name!r}")
            print(f"   EMAIL: {contact.field_values('EMAIL')}")
            print(f"   PHONE: {contact.field_values('PHONE')}")
        else:
            print("Contact not found, it will be created.")

        if os.getenv("VERIFY_WRITE") != "1":
            print("\nSet VERIFY_WRITE=1 to submit a test lead.")
            return

        print("\n--- 3. Test submission ---")
        try:
            lead_id = await submitter.submit(
                Submission(
                    lead_name="Integration Test Lead",
                    email=test_email,
                    phone=test_phone,
                    contact_name="Verification Test Contact",
                )
            )
            print(f"✅ Lead created with ID: {lead_id}")
            lead = await client.get_record_by_id(RecordKind.LEADS, lead_id)
            print(f"   Lead record: {lead}")
        except CRMError as e:
            print(f"❌ Submission failed: {e}")


if __name__ == "__main__":
    asyncio.run(main())
