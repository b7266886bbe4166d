import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Term',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='Short label of the term, also used to build its URL segment.', max_length=255)),
                ('title', models.CharField(blank=True, help_text='Display name (singular). Defaults to the name.', max_length=255)),
                ('title_plural', models.CharField(blank=True, help_text='Display name (plural). Defaults to the pluralised name.', max_length=255)),
                ('url_segment', models.CharField(blank=True, db_index=True, help_text='Slug identifying this term among its siblings.', max_length=255)),
                ('description', models.TextField(blank=True)),
                ('author_definition', models.TextField(blank=True, help_text='Guidance for people applying this term as a tag.')),
                ('public_definition', models.TextField(blank=True, help_text='Definition of the term shown to end users.')),
                ('single_select', models.BooleanField(default=False, help_text='Only one term of this taxonomy may be applied to an object. Read from the root term.')),
                ('internal_only', models.BooleanField(default=False, help_text='Terms of this taxonomy are hidden from end users. Read from the root term.')),
                ('required_types_inherit_root', models.BooleanField(default=True, help_text='Also require the types required by the root term.')),
                ('sort', models.IntegerField(default=0)),
                ('parent', models.ForeignKey(blank=True, default=None, help_text='Term that lives one level up from the current term, forming a hierarchy.', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='at_tagging.term')),
                ('type', models.ForeignKey(blank=True, default=None, editable=False, help_text="Root term of this term's tree. A root term points at itself.", null=True, on_delete=django.db.models.deletion.CASCADE, related_name='terms', to='at_tagging.term')),
                ('required_types', models.ManyToManyField(blank=True, help_text='Root terms of other taxonomies which must also be used whenever this term is used.', limit_choices_to={'parent': None}, related_name='required_by', to='at_tagging.term')),
            ],
            options={
                'ordering': ['sort', 'id'],
                'indexes': [
                    models.Index(fields=['parent', 'url_segment'], name='at_term_parent_segment_idx'),
                    models.Index(fields=['type', 'single_select'], name='at_term_type_single_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TermTag',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('owner_type', models.CharField(editable=False, help_text='Registered type of the object being tagged', max_length=255)),
                ('owner_id', models.CharField(db_index=True, editable=False, help_text='Identifier for the object being tagged', max_length=255)),
                ('relation', models.CharField(default='tags', help_text="Name of the owner's tag relation this assignment belongs to", max_length=100)),
                ('sort', models.IntegerField(default=0)),
                ('term', models.ForeignKey(help_text='Term applied to the object', on_delete=django.db.models.deletion.CASCADE, related_name='term_tags', to='at_tagging.term')),
            ],
            options={
                'ordering': ['sort', 'id'],
                'indexes': [
                    models.Index(fields=['owner_type', 'owner_id', 'relation'], name='at_termtag_owner_rel_idx'),
                ],
                'unique_together': {('owner_type', 'owner_id', 'relation', 'term')},
            },
        ),
    ]
