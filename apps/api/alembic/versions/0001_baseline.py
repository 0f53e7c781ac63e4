"""Baseline migration - WhoseHouse schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-09-28

Creates organizations, accounts, households, cases, placement requests,
messaging, child access tokens, media, notifications and the audit trail.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UPDATED_AT_TABLES = (
    'organizations',
    'profiles',
    'social_worker_profiles',
    'households',
    'cases',
    'push_tokens',
    'notification_preferences',
)


def upgrade() -> None:
    """Create the full schema."""

    # ==========================================================================
    # Enable required extensions
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Organizations
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Households (before profiles: profiles reference them)
    # ==========================================================================
    op.execute('''
        CREATE TABLE households (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            address_line1 VARCHAR(255),
            address_line2 VARCHAR(255),
            city VARCHAR(100),
            postcode VARCHAR(20),
            country VARCHAR(100) NOT NULL DEFAULT 'United Kingdom',
            description TEXT,
            total_bedrooms INTEGER NOT NULL DEFAULT 1,
            allows_house_sharing BOOLEAN NOT NULL DEFAULT true,
            accepted_placement_types JSON NOT NULL
                DEFAULT '["respite", "long_term", "emergency"]',
            availability_status VARCHAR(20) NOT NULL DEFAULT 'available',
            away_from TIMESTAMPTZ,
            away_until TIMESTAMPTZ,
            availability_notes TEXT,
            placement_version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_households_min_bedrooms CHECK (total_bedrooms >= 1)
        )
    ''')
    op.execute(
        'CREATE INDEX idx_households_org_status ON households(organization_id, availability_status)'
    )

    # ==========================================================================
    # Profiles (social workers, foster carers, admins)
    # ==========================================================================
    op.execute('''
        CREATE TABLE profiles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            email VARCHAR(255) UNIQUE NOT NULL,
            password_hash VARCHAR(255) NOT NULL,
            full_name VARCHAR(255) NOT NULL,
            role VARCHAR(20) NOT NULL,
            avatar_url VARCHAR(500),
            phone_number VARCHAR(50),
            household_id UUID REFERENCES households(id) ON DELETE SET NULL,
            is_primary_carer BOOLEAN NOT NULL DEFAULT false,
            emergency_contact_name VARCHAR(255),
            emergency_contact_phone VARCHAR(50),
            emergency_contact_relationship VARCHAR(100),
            preferred_contact VARCHAR(10) NOT NULL DEFAULT 'app',
            is_active BOOLEAN NOT NULL DEFAULT true,
            token_version INTEGER NOT NULL DEFAULT 1,
            last_login TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_profiles_org_role ON profiles(organization_id, role)')
    op.execute('CREATE INDEX idx_profiles_household ON profiles(household_id)')
    op.execute('CREATE INDEX idx_profiles_active ON profiles(is_active)')

    op.execute('''
        CREATE TABLE social_worker_profiles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            profile_id UUID UNIQUE NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            employer_name VARCHAR(255),
            team_name VARCHAR(255),
            office_location VARCHAR(255),
            manager_name VARCHAR(255),
            work_phone VARCHAR(50),
            registration_number VARCHAR(50),
            registration_expiry DATE,
            is_on_leave BOOLEAN NOT NULL DEFAULT false,
            leave_start_date DATE,
            leave_end_date DATE,
            out_of_office_message TEXT,
            bio TEXT,
            specialisms JSON NOT NULL DEFAULT '[]',
            service_areas JSON NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Household invitations
    # ==========================================================================
    op.execute('''
        CREATE TABLE household_invitations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            household_id UUID NOT NULL REFERENCES households(id) ON DELETE CASCADE,
            invited_by UUID REFERENCES profiles(id) ON DELETE SET NULL,
            email VARCHAR(255) NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            expires_at TIMESTAMPTZ NOT NULL,
            accepted_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    # Partial unique: one pending invitation per household/email
    op.execute('''
        CREATE UNIQUE INDEX uq_household_invitation_pending
        ON household_invitations (household_id, email)
        WHERE status = 'pending'
    ''')
    op.execute('CREATE INDEX idx_household_invitations_email ON household_invitations(email)')

    # ==========================================================================
    # Cases
    # ==========================================================================
    op.execute('''
        CREATE TABLE cases (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            case_number VARCHAR(20) UNIQUE NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            social_worker_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
            foster_carer_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
            household_id UUID REFERENCES households(id) ON DELETE SET NULL,
            placement_type VARCHAR(20) NOT NULL DEFAULT 'long_term',
            child_can_share BOOLEAN NOT NULL DEFAULT true,
            child_age_range VARCHAR(20),
            child_gender VARCHAR(20),
            expected_end_date DATE,
            internal_notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            closed_at TIMESTAMPTZ
        )
    ''')
    # Partial unique: a household holds at most one active case
    op.execute('''
        CREATE UNIQUE INDEX uq_one_active_case_per_household
        ON cases (household_id)
        WHERE status = 'active'
    ''')
    op.execute('CREATE INDEX idx_cases_org_status ON cases(organization_id, status)')
    op.execute('CREATE INDEX idx_cases_social_worker ON cases(social_worker_id)')
    op.execute('CREATE INDEX idx_cases_foster_carer ON cases(foster_carer_id)')
    op.execute('CREATE INDEX idx_cases_household ON cases(household_id)')

    # ==========================================================================
    # Placement requests
    # ==========================================================================
    op.execute('''
        CREATE TABLE placement_requests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            case_id UUID NOT NULL REFERENCES cases(id) ON DELETE CASCADE,
            household_id UUID NOT NULL REFERENCES households(id) ON DELETE CASCADE,
            requested_by UUID REFERENCES profiles(id) ON DELETE SET NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            placement_type VARCHAR(20) NOT NULL,
            expected_start_date DATE,
            expected_end_date DATE,
            message TEXT,
            responded_by UUID REFERENCES profiles(id) ON DELETE SET NULL,
            response_message TEXT,
            responded_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ NOT NULL
        )
    ''')
    op.execute('''
        CREATE UNIQUE INDEX uq_pending_request_per_case_household
        ON placement_requests (case_id, household_id)
        WHERE status = 'pending'
    ''')
    op.execute('CREATE INDEX idx_placement_requests_case ON placement_requests(case_id)')
    op.execute(
        'CREATE INDEX idx_placement_requests_household_status '
        'ON placement_requests(household_id, status)'
    )
    op.execute(
        'CREATE INDEX idx_placement_requests_requested_by ON placement_requests(requested_by)'
    )

    # ==========================================================================
    # Child access tokens and messages
    # ==========================================================================
    op.execute('''
        CREATE TABLE child_access_tokens (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            case_id UUID NOT NULL REFERENCES cases(id) ON DELETE CASCADE,
            token_hash VARCHAR(64) UNIQUE NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            created_by UUID REFERENCES profiles(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL,
            used_at TIMESTAMPTZ,
            device_info JSON NOT NULL DEFAULT '{}',
            CONSTRAINT ck_child_tokens_valid_expiry CHECK (expires_at > created_at)
        )
    ''')
    op.execute('CREATE INDEX idx_child_tokens_case_status ON child_access_tokens(case_id, status)')
    op.execute('CREATE INDEX idx_child_tokens_expires ON child_access_tokens(expires_at)')

    op.execute('''
        CREATE TABLE messages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            case_id UUID NOT NULL REFERENCES cases(id) ON DELETE CASCADE,
            sender_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
            recipient_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
            child_token_id UUID REFERENCES child_access_tokens(id) ON DELETE SET NULL,
            content TEXT NOT NULL,
            is_urgent BOOLEAN NOT NULL DEFAULT false,
            status VARCHAR(20) NOT NULL DEFAULT 'sent',
            sent_at TIMESTAMPTZ NOT NULL,
            delivered_at TIMESTAMPTZ,
            read_at TIMESTAMPTZ,
            CONSTRAINT ck_messages_valid_parties
                CHECK (sender_id IS NOT NULL OR child_token_id IS NOT NULL)
        )
    ''')
    op.execute('CREATE INDEX idx_messages_case_sent ON messages(case_id, sent_at)')
    op.execute('CREATE INDEX idx_messages_recipient_status ON messages(recipient_id, status)')
    op.execute('CREATE INDEX idx_messages_sender ON messages(sender_id)')

    # ==========================================================================
    # Media
    # ==========================================================================
    op.execute('''
        CREATE TABLE case_media (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            case_id UUID REFERENCES cases(id) ON DELETE CASCADE,
            household_id UUID REFERENCES households(id) ON DELETE CASCADE,
            uploaded_by UUID REFERENCES profiles(id) ON DELETE SET NULL,
            storage_key VARCHAR(500) UNIQUE NOT NULL,
            file_name VARCHAR(255) NOT NULL,
            content_type VARCHAR(100) NOT NULL,
            file_size BIGINT NOT NULL,
            checksum_sha256 VARCHAR(64) NOT NULL,
            media_type VARCHAR(20) NOT NULL DEFAULT 'other',
            description TEXT,
            is_visible_to_child BOOLEAN NOT NULL DEFAULT false,
            uploaded_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_case_media_owner CHECK (case_id IS NOT NULL OR household_id IS NOT NULL)
        )
    ''')
    op.execute('CREATE INDEX idx_case_media_case ON case_media(case_id)')
    op.execute('CREATE INDEX idx_case_media_household ON case_media(household_id)')

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.execute('''
        CREATE TABLE push_tokens (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            token VARCHAR(500) NOT NULL,
            platform VARCHAR(10) NOT NULL,
            device_name VARCHAR(255),
            is_active BOOLEAN NOT NULL DEFAULT true,
            last_used_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_push_tokens_user_token UNIQUE (user_id, token)
        )
    ''')
    op.execute('CREATE INDEX idx_push_tokens_user_active ON push_tokens(user_id, is_active)')

    op.execute('''
        CREATE TABLE notification_preferences (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID UNIQUE NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            enabled BOOLEAN NOT NULL DEFAULT true,
            messages BOOLEAN NOT NULL DEFAULT true,
            urgent_messages BOOLEAN NOT NULL DEFAULT true,
            case_updates BOOLEAN NOT NULL DEFAULT true,
            child_access BOOLEAN NOT NULL DEFAULT true,
            quiet_hours_enabled BOOLEAN NOT NULL DEFAULT false,
            quiet_hours_start TIME NOT NULL DEFAULT '22:00',
            quiet_hours_end TIME NOT NULL DEFAULT '07:00',
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE notification_log (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            notification_type VARCHAR(30) NOT NULL,
            title VARCHAR(255) NOT NULL,
            body TEXT,
            data JSON NOT NULL DEFAULT '{}',
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            sent_at TIMESTAMPTZ NOT NULL,
            clicked_at TIMESTAMPTZ,
            error_message TEXT
        )
    ''')
    op.execute('CREATE INDEX idx_notification_log_user_sent ON notification_log(user_id, sent_at)')

    # ==========================================================================
    # Audit trail (append-only)
    # ==========================================================================
    op.execute('''
        CREATE TABLE audit_logs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
            action VARCHAR(50) NOT NULL,
            actor_user_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
            target_type VARCHAR(50),
            target_id UUID,
            details JSON,
            ip_address VARCHAR(45),
            user_agent VARCHAR(500),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_audit_org_created ON audit_logs(organization_id, created_at)')
    op.execute('CREATE INDEX idx_audit_action ON audit_logs(action)')
    op.execute('CREATE INDEX idx_audit_actor ON audit_logs(actor_user_id)')
    op.execute('CREATE INDEX idx_audit_target ON audit_logs(target_type, target_id)')

    op.execute('''
        CREATE OR REPLACE FUNCTION refuse_audit_log_change()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'audit_logs is append-only';
        END;
        $$ language 'plpgsql'
    ''')
    # Row-level only: organization deletes still cascade
    op.execute('''
        CREATE TRIGGER audit_logs_append_only
            BEFORE UPDATE ON audit_logs
            FOR EACH ROW
            EXECUTE FUNCTION refuse_audit_log_change()
    ''')

    # ==========================================================================
    # Trigger: Auto-update updated_at on row modification
    # ==========================================================================
    op.execute('''
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = now();
            RETURN NEW;
        END;
        $$ language 'plpgsql'
    ''')

    for table in UPDATED_AT_TABLES:
        op.execute(f'''
            CREATE TRIGGER update_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW
                EXECUTE FUNCTION update_updated_at_column()
        ''')


def downgrade() -> None:
    """Drop every table."""

    for table in UPDATED_AT_TABLES:
        op.execute(f'DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}')
    op.execute('DROP FUNCTION IF EXISTS update_updated_at_column()')
    op.execute('DROP TRIGGER IF EXISTS audit_logs_append_only ON audit_logs')
    op.execute('DROP FUNCTION IF EXISTS refuse_audit_log_change()')

    # Reverse dependency order
    op.execute('DROP TABLE IF EXISTS audit_logs')
    op.execute('DROP TABLE IF EXISTS notification_log')
    op.execute('DROP TABLE IF EXISTS notification_preferences')
    op.execute('DROP TABLE IF EXISTS push_tokens')
    op.execute('DROP TABLE IF EXISTS case_media')
    op.execute('DROP TABLE IF EXISTS messages')
    op.execute('DROP TABLE IF EXISTS child_access_tokens')
    op.execute('DROP TABLE IF EXISTS placement_requests')
    op.execute('DROP TABLE IF EXISTS cases')
    op.execute('DROP TABLE IF EXISTS household_invitations')
    op.execute('DROP TABLE IF EXISTS social_worker_profiles')
    op.execute('DROP TABLE IF EXISTS profiles')
    op.execute('DROP TABLE IF EXISTS households')
    op.execute('DROP TABLE IF EXISTS organizations')
